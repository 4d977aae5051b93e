#!/usr/bin/env python3
"""
IK Tools Backend Server

Host, port, reload and logging come from configs.appconfig
(IK_TOOLS_HOST, IK_TOOLS_PORT, IK_TOOLS_RELOAD, IK_TOOLS_LOG_LEVEL, IK_TOOLS_LOG_FILE).
"""
from __future__ import annotations

import logging
import os
import sys

# Add parent directory to path to import configs
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import uvicorn  # noqa: E402

from configs.appconfig import AppConfig  # noqa: E402
from configs.logging_config import setup_logging  # noqa: E402

logger = logging.getLogger(__name__)


def main():
    setup_logging(AppConfig.LOG_LEVEL, file_output=AppConfig.LOG_FILE, buffer_size=AppConfig.LOG_BUFFER_SIZE)
    logger.info(f'Starting IK Tools backend on {AppConfig.backend_url()}')
    uvicorn.run(
        'backend.query_api:app',
        host=AppConfig.BACKEND_HOST,
        port=AppConfig.BACKEND_PORT,
        reload=AppConfig.BACKEND_RELOAD,
    )


if __name__ == '__main__':
    main()
