"""
test_trajectory.py - Recording, playback, storage and export/import of trajectories.
"""
from __future__ import annotations

import json

import numpy as np
import pytest
from pydantic import ValidationError

from ik_tools.activity import Activity
from ik_tools.errors import InvalidTrajectoryDocument
from ik_tools.errors import TrajectoryNotFound
from ik_tools.recorder import TrajectoryRecorder
from ik_tools.scheduler import FrameScheduler
from ik_tools.schemas import Position
from ik_tools.trajectory_api import TrajectoryManager
from ik_tools.trajectory_models import Keyframe
from ik_tools.trajectory_models import Trajectory
from ik_tools.trajectory_store import TrajectoryStore
from ik_tools.trajectory_utils import analyze_trajectory
from ik_tools.trajectory_utils import build_end_effector_path
from ik_tools.trajectory_utils import find_bracketing_keyframes
from ik_tools.trajectory_utils import parse_trajectory_document
from ik_tools.trajectory_utils import sample_trajectory
from ik_tools.trajectory_utils import trajectory_to_document


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def manager(clock) -> TrajectoryManager:
    return TrajectoryManager(clock=clock)


@pytest.fixture
def wave(manager) -> Trajectory:
    """Three keyframes at t=0, 100, 200 with j1 = 0, 0.5, 1.0"""
    manager.start_recording('wave')
    manager.record_keyframe({'j1': 0.0}, timestamp_ms=0, end_effector_position=(1.5, 0.0, 0.0))
    manager.record_keyframe({'j1': 0.5}, timestamp_ms=100, end_effector_position=(1.3, 0.7, 0.0))
    manager.record_keyframe({'j1': 1.0}, timestamp_ms=200, end_effector_position=(0.8, 1.3, 0.0))
    return manager.stop_recording()


# =============================================================================
# Test: Sampling
# =============================================================================

def test_recorded_trajectory_shape(wave):
    assert wave.name == 'wave'
    assert wave.keyframe_count == 3
    assert wave.duration == 200
    assert [p.time for p in wave.end_effector_path] == [0, 100, 200]


def test_sample_between_keyframes(wave):
    assert sample_trajectory(wave, 50).joint_values['j1'] == pytest.approx(0.25)
    assert sample_trajectory(wave, 150).joint_values['j1'] == pytest.approx(0.75)
    position = sample_trajectory(wave, 50).end_effector_position
    assert position.x == pytest.approx(1.4) and position.y == pytest.approx(0.35)


def test_sample_outside_range_holds_ends(wave):
    assert sample_trajectory(wave, -10).joint_values == {'j1': 0.0}
    assert sample_trajectory(wave, 500).joint_values == {'j1': 1.0}


def test_bracketing_with_repeated_timestamps():
    keyframes = [
        Keyframe(timestamp=0, joint_values={'a': 0.0}),
        Keyframe(timestamp=100, joint_values={'a': 1.0}),
        Keyframe(timestamp=100, joint_values={'a': 2.0}),
        Keyframe(timestamp=200, joint_values={'a': 3.0}),
    ]
    prev, nxt = find_bracketing_keyframes(keyframes, 150)
    assert prev.joint_values['a'] == 2.0 and nxt.joint_values['a'] == 3.0
    trajectory = Trajectory(name='rep', keyframes=keyframes, duration=200)
    assert sample_trajectory(trajectory, 100).joint_values['a'] == 2.0, 'Zero-length interval holds prev values'


def test_sample_joint_missing_on_one_side():
    trajectory = Trajectory(name='partial', duration=100, keyframes=[
        Keyframe(timestamp=0, joint_values={'a': 0.0}),
        Keyframe(timestamp=100, joint_values={'a': 1.0, 'b': 4.0}),
    ])
    assert sample_trajectory(trajectory, 50).joint_values == {'a': 0.5, 'b': 4.0}


# =============================================================================
# Test: Playback
# =============================================================================

def test_playback_scenario_at_50ms(manager, wave, planar_tree, clock):
    """Playback at speed 1.0 sampled at t=50 yields j1 = 0.25"""
    assert manager.play_trajectory('wave', planar_tree)
    assert planar_tree.get_joint_value('j1') == 0.0, 'First frame applied immediately'

    assert manager.player.tick(clock.advance(50)) is True
    assert planar_tree.get_joint_value('j1') == pytest.approx(0.25)


def test_playback_completes_with_final_pose(manager, wave, planar_tree, clock):
    completed = []
    manager.play_trajectory('wave', planar_tree, on_complete=lambda: completed.append(1))
    manager.player.tick(clock.advance(120))
    assert manager.player.tick(clock.advance(500)) is False

    assert planar_tree.get_joint_value('j1') == pytest.approx(1.0)
    assert completed == [1]
    assert not manager.is_playing
    assert not manager.guard.is_active(Activity.PLAYBACK)


def test_playback_speed(manager, wave, planar_tree, clock):
    manager.play_trajectory('wave', planar_tree, speed=2.0)
    manager.player.tick(clock.advance(25))
    assert planar_tree.get_joint_value('j1') == pytest.approx(0.25)


def test_playback_loops(manager, wave, planar_tree, clock):
    manager.play_trajectory('wave', planar_tree, loop=True)
    assert manager.player.tick(clock.advance(250)) is True
    assert planar_tree.get_joint_value('j1') == pytest.approx(0.25), '250 ms wraps to 50 ms'
    assert manager.player.state.current_time == pytest.approx(50.0)
    assert manager.is_playing


def test_zero_duration_loop_holds_first_frame(manager, planar_tree, clock):
    manager.start_recording('still')
    manager.record_keyframe({'j1': 0.7}, timestamp_ms=0)
    manager.stop_recording()

    manager.play_trajectory('still', planar_tree, loop=True)
    assert manager.player.tick(clock.advance(1000)) is True
    assert planar_tree.get_joint_value('j1') == pytest.approx(0.7)


def test_playback_with_scheduler(wave, planar_tree, clock):
    scheduler = FrameScheduler(clock)
    manager = TrajectoryManager(scheduler=scheduler, clock=clock)
    manager.store.put(wave)
    updates = []
    manager.on_playback_update(updates.append)

    assert manager.play_trajectory('wave', planar_tree)
    scheduler.run_until_idle(frame_interval_ms=10)

    assert not manager.is_playing
    assert planar_tree.get_joint_value('j1') == pytest.approx(1.0)
    assert updates[0]['progress'] == 0.0
    assert updates[-1]['progress'] == pytest.approx(1.0)
    assert updates[-1]['end_effector_position']['x'] == pytest.approx(0.8)


def test_play_rejections(manager, wave, planar_tree):
    assert manager.play_trajectory('missing', planar_tree) is False
    assert manager.play_trajectory('wave', planar_tree, speed=0.0) is False
    assert manager.play_trajectory('wave', planar_tree, speed=-1.0) is False

    manager.store.put(Trajectory(name='empty'))
    assert manager.play_trajectory('empty', planar_tree) is False
    assert not manager.is_playing


def test_stop_playback_idempotent(manager, wave, planar_tree):
    assert manager.stop_playback() is False, 'Nothing to stop'
    manager.play_trajectory('wave', planar_tree)
    assert manager.stop_playback() is True
    assert manager.stop_playback() is False
    assert not manager.is_playing


# =============================================================================
# Test: Mutual Exclusion
# =============================================================================

def test_recording_rejected_during_playback(manager, wave, planar_tree, clock):
    manager.play_trajectory('wave', planar_tree)
    state = manager.playback_state

    assert manager.start_recording('other') is False
    assert not manager.is_recording
    assert manager.playback_state is state, 'Playback state is untouched'
    manager.player.tick(clock.advance(50))
    assert planar_tree.get_joint_value('j1') == pytest.approx(0.25)


def test_playback_rejected_during_recording(manager, wave, planar_tree):
    manager.start_recording('take2')
    manager.record_keyframe({'j1': 0.1}, timestamp_ms=0)

    assert manager.play_trajectory('wave', planar_tree) is False
    assert not manager.is_playing
    assert manager.recorder.keyframe_count == 1, 'Recording is untouched'


def test_second_recording_rejected(manager):
    assert manager.start_recording('first')
    manager.record_keyframe({'j1': 0.0}, timestamp_ms=0)
    assert manager.start_recording('second') is False
    assert manager.recorder.recording_name == 'first'
    assert manager.recorder.keyframe_count == 1


# =============================================================================
# Test: Recorder
# =============================================================================

def test_record_keyframe_validation(manager):
    assert manager.record_keyframe({'j1': 0.0}) is None, 'Not recording'
    assert manager.stop_recording() is None

    manager.start_recording('checks')
    assert manager.record_keyframe({'j1': 0.0}, timestamp_ms=-5) is None
    assert manager.record_keyframe(timestamp_ms=0) is None, 'No values and no chain'
    assert manager.record_keyframe({'j1': 0.0}, timestamp_ms=49.6).timestamp == 50
    assert manager.record_keyframe({'j1': 0.0}, timestamp_ms=10) is None, 'Out of order'
    assert manager.recorder.recording_duration_ms == 50


def test_record_from_clock_and_chain(manager, planar_tree, clock):
    manager.start_recording('live', chain=planar_tree)
    clock.advance(40)
    planar_tree.set_joint_value('j1', 0.3)
    keyframe = manager.record_keyframe()

    assert keyframe.timestamp == 40
    assert keyframe.joint_values == {'j1': 0.3, 'j2': 0.0}
    assert keyframe.end_effector_position is not None


def test_sampling_recorder_with_scheduler(planar_tree, clock):
    scheduler = FrameScheduler(clock)
    manager = TrajectoryManager(scheduler=scheduler, clock=clock)
    assert manager.start_recording('sampled', chain=planar_tree, sampling_interval_ms=50)

    start = clock()
    for frame in range(21):
        scheduler.step(start + frame * 10)
    trajectory = manager.stop_recording()

    assert [kf.timestamp for kf in trajectory.keyframes] == [0, 50, 100, 150, 200]
    assert len(trajectory.end_effector_path) == 5
    scheduler.step(start + 210)
    assert scheduler.idle


def test_sampling_requires_chain(manager):
    assert manager.start_recording('bad', sampling_interval_ms=50) is False
    assert manager.start_recording('bad', sampling_interval_ms=0) is False
    assert manager.start_recording('') is False
    assert not manager.is_recording


def test_recording_autostops_at_limit(clock):
    store = TrajectoryStore()
    recorder = TrajectoryRecorder(store, clock=clock, max_keyframes=3)
    recorder.start_recording('long')
    for t in range(3):
        recorder.record_keyframe({'j1': float(t)}, timestamp_ms=t * 10)

    assert not recorder.is_recording
    assert store.get('long').keyframe_count == 3


def test_recording_overwrites_same_name(manager, wave):
    manager.start_recording('wave')
    manager.record_keyframe({'j1': 9.0}, timestamp_ms=0)
    manager.stop_recording()
    assert manager.get_trajectory('wave').keyframe_count == 1
    assert manager.get_trajectory_names() == ['wave']


def test_record_update_callback(manager):
    updates = []
    manager.on_record_update(updates.append)
    manager.start_recording('cb')
    manager.record_keyframe({'j1': 0.0}, timestamp_ms=0)
    manager.record_keyframe({'j1': 1.0}, timestamp_ms=30)
    assert updates[-1] == {'trajectory_name': 'cb', 'keyframe_count': 2, 'duration': 30}


# =============================================================================
# Test: Analysis
# =============================================================================

def test_analyze_recorded_trajectory(manager, wave):
    analysis = manager.analyze_trajectory('wave')
    assert analysis.keyframe_count == 3 and analysis.duration == 200

    j1 = analysis.joint_stats['j1']
    assert (j1.min, j1.max, j1.range, j1.final) == (0.0, 1.0, 1.0, 1.0)

    first, second = np.sqrt(0.53), np.sqrt(0.61)
    assert analysis.total_distance == pytest.approx(first + second)
    assert analysis.max_velocity == pytest.approx(second / 0.1), 'Velocity is distance per second'
    assert analysis.average_velocity == pytest.approx((first + second) / 0.2)
    assert analysis.bounds_min == Position(x=0.8, y=0.0, z=0.0)
    assert analysis.bounds_max == Position(x=1.5, y=1.3, z=0.0)

    summary = analysis.to_dict()
    assert summary['end_effector']['bounds']['max'] == {'x': 1.5, 'y': 1.3, 'z': 0.0}
    assert summary['joint_stats']['j1']['range'] == 1.0


def test_analyze_skips_zero_time_steps():
    keyframes = [
        Keyframe(timestamp=0, joint_values={'a': 2.0, 'b': 1.0}, end_effector_position={'x': 0.0, 'y': 0.0}),
        Keyframe(timestamp=0, joint_values={'a': -1.0}, end_effector_position={'x': 3.0, 'y': 0.0}),
        Keyframe(timestamp=100, joint_values={'a': 0.5, 'b': 2.0}, end_effector_position={'x': 3.0, 'y': 4.0}),
    ]
    trajectory = Trajectory(name='jump', keyframes=keyframes, duration=100,
                            end_effector_path=build_end_effector_path(keyframes))
    analysis = analyze_trajectory(trajectory)

    assert analysis.total_distance == pytest.approx(7.0)
    assert analysis.max_velocity == pytest.approx(40.0), 'Only the 100 ms step yields a velocity'
    assert analysis.average_velocity == pytest.approx(40.0)
    assert analysis.joint_stats['b'].min == 0.0, 'A joint missing from a keyframe counts as 0'
    assert analysis.joint_stats['a'].final == 0.5


def test_analyze_without_path():
    trajectory = Trajectory(name='bare', duration=50, keyframes=[Keyframe(timestamp=50, joint_values={'a': 1.0})])
    analysis = analyze_trajectory(trajectory)
    assert analysis.total_distance == 0.0 and analysis.max_velocity == 0.0
    assert analysis.bounds_min is None
    assert analysis.to_dict()['end_effector']['bounds'] is None

    empty = analyze_trajectory(Trajectory(name='empty'))
    assert empty.joint_stats == {} and empty.keyframe_count == 0


def test_analyze_unknown_trajectory(manager):
    assert manager.analyze_trajectory('ghost') is None


# =============================================================================
# Test: Store, Export & Import
# =============================================================================

def test_export_import_round_trip(manager, wave):
    exported = manager.export_trajectory('wave')
    manager.delete_trajectory('wave')

    imported = manager.import_trajectory(exported)
    assert imported is not None
    assert imported.keyframes == wave.keyframes
    assert imported.duration == wave.duration
    assert imported.end_effector_path == wave.end_effector_path


def test_export_document_uses_camel_case(wave):
    document = trajectory_to_document(wave)
    assert set(document) == {'name', 'keyframes', 'duration', 'endEffectorPath'}
    assert set(document['keyframes'][0]) == {'timestamp', 'jointValues', 'endEffectorPosition'}
    assert document['endEffectorPath'][1] == {'time': 100, 'position': {'x': 1.3, 'y': 0.7, 'z': 0.0}}


def test_import_rebuilds_missing_path_and_duration():
    document = {
        'name': 'bare',
        'keyframes': [
            {'timestamp': 0, 'jointValues': {'j1': 0.0}, 'endEffectorPosition': {'x': 1, 'y': 0, 'z': 0}},
            {'timestamp': 80, 'jointValues': {'j1': 1.0}},
            {'timestamp': 120, 'jointValues': {'j1': 2.0}, 'endEffectorPosition': {'x': 0, 'y': 1, 'z': 0}},
        ],
    }
    trajectory = parse_trajectory_document(json.dumps(document))
    assert trajectory.duration == 120
    assert [p.time for p in trajectory.end_effector_path] == [0, 120]
    assert trajectory.end_effector_path[1].position == Position(x=0, y=1, z=0)


def test_duration_shorter_than_keyframes_rejected():
    keyframes = [Keyframe(timestamp=0, joint_values={'a': 0.0}), Keyframe(timestamp=200, joint_values={'a': 1.0})]
    with pytest.raises(ValidationError, match='shorter than its last keyframe'):
        Trajectory(name='short', keyframes=keyframes, duration=50)
    assert Trajectory(name='long', keyframes=keyframes, duration=250).duration == 250


def test_stored_trajectory_is_isolated_from_callers(manager, wave):
    wave.keyframes[0].joint_values['j1'] = 99.0
    returned = manager.get_trajectory('wave')
    assert returned.keyframes[0].joint_values['j1'] == 0.0, 'The recording result is not the stored copy'

    returned.keyframes[0].joint_values['j1'] = 42.0
    with pytest.raises(AttributeError):
        returned.keyframes.append(returned.keyframes[0])

    stored = manager.get_trajectory('wave')
    assert stored.keyframes[0].joint_values['j1'] == 0.0
    assert [kf.timestamp for kf in stored.keyframes] == [0, 100, 200]
    assert isinstance(stored.end_effector_path, tuple)


@pytest.mark.parametrize('document', [
    'not json',
    '[1, 2, 3]',
    {'name': 'no-keyframes'},
    {'name': '', 'keyframes': []},
    {'name': 'neg', 'keyframes': [{'timestamp': -1, 'jointValues': {}}]},
    {'name': 'order', 'keyframes': [{'timestamp': 50, 'jointValues': {}}, {'timestamp': 10, 'jointValues': {}}]},
    {'name': 'types', 'keyframes': [{'timestamp': 0, 'jointValues': {'j1': 'high'}}]},
    {'name': 'short', 'duration': 50, 'keyframes': [{'timestamp': 0, 'jointValues': {'j1': 0.0}},
                                                 {'timestamp': 200, 'jointValues': {'j1': 1.0}}]},
])
def test_invalid_documents_rejected(document):
    with pytest.raises(InvalidTrajectoryDocument):
        parse_trajectory_document(document)

    store = TrajectoryStore()
    assert store.import_trajectory(document) is None
    assert len(store) == 0, 'Nothing is stored for an invalid document'


def test_unknown_names(manager):
    assert manager.export_trajectory('ghost') is None
    assert manager.delete_trajectory('ghost') is False
    assert manager.get_trajectory('ghost') is None
    assert manager.get_end_effector_path('ghost') is None
    with pytest.raises(TrajectoryNotFound, match="'ghost' not found"):
        manager.store.require('ghost')


def test_save_and_load_file(manager, wave, tmp_path):
    path = manager.store.save_to_file('wave', tmp_path)
    assert path.exists()

    other = TrajectoryStore()
    loaded = other.load_from_file(path)
    assert loaded.keyframes == wave.keyframes
    assert other.load_from_file(tmp_path / 'missing.json') is None
