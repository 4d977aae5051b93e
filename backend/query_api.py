from __future__ import annotations

import json
import logging
import math
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from configs.appconfig import ROBOTS_DIR
from configs.appconfig import TRAJECTORIES_DIR
from configs.logging_config import get_log_buffer
from ik_tools.activity import ActivityGuard
from ik_tools.chain import estimate_max_reach
from ik_tools.ik_api import IKController
from ik_tools.ik_solver import analyze_robot_structure
from ik_tools.ik_solver import CCDSolver
from ik_tools.robot_model import KinematicTree
from ik_tools.scheduler import FrameScheduler
from ik_tools.scheduler import monotonic_ms
from ik_tools.trajectory_api import TrajectoryManager
from ik_tools.trajectory_utils import trajectory_to_document

logger = logging.getLogger(__name__)


def sanitize_for_json(obj):
    """
    Recursively sanitize an object for JSON serialization.

    Converts inf/-inf to string "Infinity"/"-Infinity" and nan to null.
    Numpy scalars and arrays become plain floats and lists.
    """
    if isinstance(obj, dict):
        return {k: sanitize_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [sanitize_for_json(item) for item in obj]
    elif hasattr(obj, 'tolist') and not isinstance(obj, (int, float)):  # numpy arrays/scalars
        return sanitize_for_json(obj.tolist())
    elif isinstance(obj, bool) or obj is None or isinstance(obj, (int, str)):
        return obj
    elif isinstance(obj, float):
        if math.isinf(obj):
            return 'Infinity' if obj > 0 else '-Infinity'
        elif math.isnan(obj):
            return None
        return obj
    return obj


# =============================================================================
# Session
# =============================================================================

class RobotSession:
    """
    Everything driving one loaded robot: the kinematic tree, an IK controller
    and a trajectory manager sharing one activity guard and frame scheduler.
    """

    def __init__(self, clock=monotonic_ms):
        self.clock = clock
        self.scheduler = FrameScheduler(clock=clock)
        self.guard = ActivityGuard()
        self.solver = CCDSolver()
        self.ik = IKController(solver=self.solver, guard=self.guard, scheduler=self.scheduler, clock=clock)
        self.trajectories = TrajectoryManager(guard=self.guard, scheduler=self.scheduler, clock=clock)
        self.tree: KinematicTree | None = None

    def load_robot(self, description: dict) -> KinematicTree:
        self.ik.stop_animation()
        self.trajectories.stop_playback()
        self.trajectories.stop_recording()
        self.scheduler.clear()
        self.tree = KinematicTree.from_dict(description)
        logger.info(f"Loaded robot '{self.tree.name}' ({len(self.tree.joint_names())} joints)")
        return self.tree

    def require_tree(self) -> KinematicTree:
        if self.tree is None:
            raise RuntimeError('No robot loaded')
        return self.tree

    def robot_state(self) -> dict:
        tree = self.require_tree()
        return {
            **tree.snapshot(),
            'is_animating': self.ik.is_animating,
            'is_recording': self.trajectories.is_recording,
            'is_playing': self.trajectories.is_playing,
        }


_session = RobotSession()


def get_session() -> RobotSession:
    return _session


def reset_session(clock=monotonic_ms) -> RobotSession:
    """Replace the process-wide session (used by tests and on reload)."""
    global _session
    _session = RobotSession(clock=clock)
    return _session


def _error(message: str) -> dict:
    return {
        'status': 'error',
        'message': message,
    }


def _is_plain_filename(name: str) -> bool:
    """True for a bare file name that cannot leave its directory."""
    return bool(name) and name not in ('.', '..') and '/' not in name and '\\' not in name


app = FastAPI(title='IK Tools API')

# Simple CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.get('/')
def root():
    return {'message': 'IK Tools API is running'}


@app.get('/status')
def get_status():
    return {
        'status': 'operational',
        'message': 'IK Tools backend is running successfully',
    }


# =============================================================================
# Robot
# =============================================================================

@app.post('/load-robot')
def load_robot(request: dict):
    """
    Load a robot description, or a bundled robot by filename.

    Request body:
        {"description": {...}}  or  {"filename": "planar_2link.json"}
    """
    try:
        session = get_session()
        if 'filename' in request:
            if not _is_plain_filename(request['filename']):
                return _error(f"Invalid robot filename: {request['filename']}")
            path = ROBOTS_DIR / request['filename']
            if not path.exists():
                return _error(f"Robot file not found: {request['filename']}")
            with open(path) as f:
                description = json.load(f)
        else:
            description = request.get('description', request)

        tree = session.load_robot(description)
        analysis = analyze_robot_structure(tree)
        return sanitize_for_json({
            'status': 'success',
            'message': f"Loaded robot '{tree.name}'",
            'robot': session.robot_state(),
            'dof': analysis.dof,
            'max_reach': estimate_max_reach(tree),
            'solver_settings': analysis.settings.to_dict(),
        })

    except Exception as e:
        logger.exception('Error loading robot')
        return _error(f'Failed to load robot: {str(e)}')


@app.get('/robot-state')
def get_robot_state():
    try:
        return sanitize_for_json({
            'status': 'success',
            'robot': get_session().robot_state(),
        })
    except Exception as e:
        return _error(str(e))


@app.post('/set-joint-values')
def set_joint_values(request: dict):
    """Request body: {"joint_values": {"j1": 0.5, ...}}"""
    try:
        session = get_session()
        tree = session.require_tree()
        if session.trajectories.is_playing:
            return _error('Cannot set joint values while a trajectory is playing')
        session.ik.stop_animation()
        tree.set_joint_values(request.get('joint_values', {}))
        return sanitize_for_json({
            'status': 'success',
            'robot': session.robot_state(),
        })
    except Exception as e:
        logger.exception('Error setting joint values')
        return _error(f'Failed to set joint values: {str(e)}')


# =============================================================================
# IK
# =============================================================================

def _solver_overrides(request: dict) -> dict:
    return {
        'max_iterations': request.get('max_iterations'),
        'tolerance': request.get('tolerance'),
        'damping_factor': request.get('damping_factor'),
    }


@app.post('/solve-ik')
def solve_ik(request: dict):
    """
    Solve IK without moving the robot.

    Request body:
        {"target": {"x": 1.2, "y": 0.3, "z": 0.0},
         "max_iterations": 30, "tolerance": 0.01, "damping_factor": 0.7}   # overrides optional
    """
    try:
        session = get_session()
        tree = session.require_tree()
        result = session.solver.solve_detailed(tree, request['target'], **_solver_overrides(request))
        if result is None:
            return _error('IK unavailable for this robot')
        return sanitize_for_json({
            'status': 'success',
            'message': 'Converged' if result.converged else 'Iteration limit reached',
            'result': result.to_dict(),
        })
    except Exception as e:
        logger.exception('Error solving IK')
        return _error(f'Failed to solve IK: {str(e)}')


@app.post('/execute-ik')
def execute_ik(request: dict):
    """
    Solve IK and move the robot (animated unless "animate": false).

    Frames are advanced by /advance-frame.
    """
    try:
        session = get_session()
        tree = session.require_tree()
        executed = session.ik.execute_ik(
            tree,
            request['target'],
            animate=request.get('animate', True),
            duration=request.get('duration'),
            **_solver_overrides(request),
        )
        if not executed:
            return _error('IK could not be executed')
        animation = session.ik.animation
        return sanitize_for_json({
            'status': 'success',
            'animating': session.ik.is_animating,
            'duration': animation.duration_ms if animation is not None and animation.is_running else 0.0,
            'goal': session.solver.last_goal_angles,
            'robot': session.robot_state(),
        })
    except Exception as e:
        logger.exception('Error executing IK')
        return _error(f'Failed to execute IK: {str(e)}')


@app.post('/stop-animation')
def stop_animation():
    session = get_session()
    session.ik.stop_animation()
    return {
        'status': 'success',
        'message': 'Animation stopped',
    }


@app.post('/advance-frame')
def advance_frame(request: dict | None = None):
    """
    Run one scheduler frame (the UI's per-frame tick).

    Request body (optional): {"now_ms": 1234.5}
    """
    try:
        session = get_session()
        now = (request or {}).get('now_ms')
        pending = session.scheduler.step(now)
        state = session.robot_state() if session.tree is not None else None
        return sanitize_for_json({
            'status': 'success',
            'pending_tasks': pending,
            'robot': state,
        })
    except Exception as e:
        logger.exception('Error advancing frame')
        return _error(f'Failed to advance frame: {str(e)}')


# =============================================================================
# Trajectories
# =============================================================================

@app.post('/start-recording')
def start_recording(request: dict):
    """Request body: {"name": "wave", "sampling_interval_ms": 50}"""
    session = get_session()
    chain = session.tree
    interval = request.get('sampling_interval_ms')
    if not session.trajectories.start_recording(request.get('name', ''), chain=chain, sampling_interval_ms=interval):
        return _error('Recording could not be started')
    return {
        'status': 'success',
        'message': f"Recording '{request.get('name')}'",
    }


@app.post('/record-keyframe')
def record_keyframe(request: dict | None = None):
    """Request body (optional): {"joint_values": {...}, "timestamp_ms": 100, "end_effector_position": {...}}"""
    request = request or {}
    try:
        keyframe = get_session().trajectories.record_keyframe(
            request.get('joint_values'),
            request.get('timestamp_ms'),
            request.get('end_effector_position'),
        )
    except (TypeError, ValueError) as e:
        return _error(f'Invalid keyframe: {str(e)}')
    if keyframe is None:
        return _error('Keyframe not recorded')
    return sanitize_for_json({
        'status': 'success',
        'keyframe': keyframe.model_dump(by_alias=True, exclude_none=True),
    })


@app.post('/stop-recording')
def stop_recording():
    trajectory = get_session().trajectories.stop_recording()
    if trajectory is None:
        return _error('Not recording')
    return sanitize_for_json({
        'status': 'success',
        'message': f"Recorded '{trajectory.name}'",
        'trajectory': trajectory_to_document(trajectory),
    })


@app.post('/play-trajectory')
def play_trajectory(request: dict):
    """Request body: {"name": "wave", "speed": 1.0, "loop": false}"""
    try:
        session = get_session()
        tree = session.require_tree()
        played = session.trajectories.play_trajectory(
            request.get('name', ''),
            tree,
            speed=float(request.get('speed', 1.0)),
            loop=bool(request.get('loop', False)),
        )
        if not played:
            return _error(f"Trajectory '{request.get('name')}' could not be played")
        return {
            'status': 'success',
            'message': f"Playing '{request.get('name')}'",
        }
    except Exception as e:
        logger.exception('Error starting playback')
        return _error(f'Failed to play trajectory: {str(e)}')


@app.post('/stop-playback')
def stop_playback():
    stopped = get_session().trajectories.stop_playback()
    return {
        'status': 'success',
        'stopped': stopped,
    }


@app.get('/list-trajectories')
def list_trajectories():
    manager = get_session().trajectories
    trajectories = []
    for name in manager.get_trajectory_names():
        trajectory = manager.get_trajectory(name)
        trajectories.append({
            'name': name,
            'keyframes': trajectory.keyframe_count,
            'duration': trajectory.duration,
        })
    return {
        'status': 'success',
        'trajectories': trajectories,
    }


@app.get('/export-trajectory')
def export_trajectory(name: str):
    document = get_session().trajectories.store.export_document(name)
    if document is None:
        return _error(f"Trajectory '{name}' not found")
    return sanitize_for_json({
        'status': 'success',
        'document': document,
    })



@app.get('/analyze-trajectory')
def analyze_trajectory(name: str):
    analysis = get_session().trajectories.analyze_trajectory(name)
    if analysis is None:
        return _error(f"Trajectory '{name}' not found")
    return sanitize_for_json({
        'status': 'success',
        'analysis': analysis.to_dict(),
    })

@app.post('/import-trajectory')
def import_trajectory(request: dict):
    """Request body: an exported document, or {"document": <document or JSON text>}"""
    document = request.get('document', request)
    trajectory = get_session().trajectories.import_trajectory(document)
    if trajectory is None:
        return _error('Invalid trajectory document')
    return {
        'status': 'success',
        'message': f"Imported '{trajectory.name}'",
        'name': trajectory.name,
        'keyframes': trajectory.keyframe_count,
        'duration': trajectory.duration,
    }


@app.delete('/delete-trajectory')
def delete_trajectory(name: str):
    if not get_session().trajectories.delete_trajectory(name):
        return _error(f"Trajectory '{name}' not found")
    return {
        'status': 'success',
        'message': f"Deleted '{name}'",
    }


# =============================================================================
# Trajectory Files
# =============================================================================

@app.post('/save-trajectory')
def save_trajectory(request: dict):
    """Save a stored trajectory to the user trajectories directory"""
    try:
        name = request.get('name', '')
        if not _is_plain_filename(name):
            return _error(f"Invalid trajectory name: '{name}'")
        time_mark = datetime.now().strftime('%Y%m%d_%H%M%S')
        filename = f'{name}_{time_mark}.json'
        path = get_session().trajectories.store.save_to_file(name, TRAJECTORIES_DIR, filename=filename)
        if path is None:
            return _error(f"Trajectory '{name}' not found")
        return {
            'status': 'success',
            'message': 'Trajectory saved successfully',
            'filename': filename,
            'path': str(path),
        }
    except Exception as e:
        logger.exception('Error saving trajectory')
        return _error(f'Failed to save trajectory: {str(e)}')


@app.get('/list-saved-trajectories')
def list_saved_trajectories():
    """List trajectory files in the user trajectories directory"""
    try:
        if not TRAJECTORIES_DIR.exists():
            return {
                'status': 'success',
                'files': [],
            }

        files = []
        for f in sorted(TRAJECTORIES_DIR.glob('*.json'), key=lambda x: x.stat().st_mtime, reverse=True):
            try:
                with open(f) as fp:
                    data = json.load(fp)
                files.append({
                    'filename': f.name,
                    'name': data.get('name', f.stem),
                    'keyframes': len(data.get('keyframes', [])),
                    'duration': data.get('duration', 0),
                })
            except (OSError, json.JSONDecodeError):
                files.append({
                    'filename': f.name,
                    'name': f.stem,
                    'error': True,
                })

        return {
            'status': 'success',
            'files': files,
        }

    except Exception as e:
        return _error(f'Failed to list trajectories: {str(e)}')


@app.get('/load-trajectory')
def load_trajectory(filename: str = None):
    """Load a trajectory file into the store (most recent file when no filename given)"""
    try:
        if not TRAJECTORIES_DIR.exists():
            return _error('No trajectories directory found')

        if filename:
            if not _is_plain_filename(filename):
                return _error(f'Invalid trajectory filename: {filename}')
            file_path = TRAJECTORIES_DIR / filename
            if not file_path.exists():
                return _error(f'File not found: {filename}')
        else:
            files = list(TRAJECTORIES_DIR.glob('*.json'))
            if not files:
                return _error('No saved trajectories found')
            file_path = max(files, key=lambda f: f.stat().st_mtime)

        trajectory = get_session().trajectories.store.load_from_file(file_path)
        if trajectory is None:
            return _error(f'Invalid trajectory file: {file_path.name}')

        return {
            'status': 'success',
            'filename': file_path.name,
            'name': trajectory.name,
            'keyframes': trajectory.keyframe_count,
            'duration': trajectory.duration,
        }

    except Exception as e:
        logger.exception('Error loading trajectory')
        return _error(f'Failed to load trajectory: {str(e)}')


@app.get('/logs')
def get_logs(level: str = None, source: str = None, limit: int = 200):
    return {
        'status': 'success',
        'logs': get_log_buffer().get_logs(level=level, source=source, limit=limit),
    }
