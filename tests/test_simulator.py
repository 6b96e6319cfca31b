"""Closed-loop tests with the offline simulator."""

import csv

import numpy as np
import pytest

from highway_planner.config import PlannerConfig
from highway_planner.simulation import HighwaySimulator, TrafficVehicle, make_loop_track


@pytest.fixture
def sim_config(tmp_path):
    return PlannerConfig(output_path=str(tmp_path / "out"), visualization_enabled=False)


def test_traffic_vehicle(loop_map):
    vehicle = TrafficVehicle(id=3, lane=2, s=loop_map.track_length - 1.0, speed=10.0)
    observation = vehicle.observe(loop_map)
    assert observation.id == 3
    assert observation.d == 10.0
    assert observation.speed == pytest.approx(10.0)

    vehicle.advance(0.5, loop_map.track_length)
    assert vehicle.s == pytest.approx(4.0)


def test_empty_road_long_run(sim_config, loop_map):
    sim = HighwaySimulator(sim_config, loop_map)
    history = sim.run(n_ticks=400)

    assert len(history) == 400
    xs = np.array([r.ego.x for r in history])
    ys = np.array([r.ego.y for r in history])
    assert np.isfinite(xs).all()
    assert np.isfinite(ys).all()
    assert all(len(r.trajectory) == sim_config.horizon for r in history)

    lanes = [r.state.lane for r in history]
    assert set(lanes) == {1}
    assert all(abs(r.ego.d - 6.0) < 0.5 for r in history)

    speeds = [r.state.reference_speed for r in history]
    assert all(b >= a for a, b in zip(speeds, speeds[1:]))
    assert speeds[-1] == pytest.approx(sim_config.speed_limit)
    # The car never drives faster than the limit (50 mph with some slack)
    assert max(r.ego.speed for r in history) < 50.0 / 2.24


def test_passes_slow_vehicle(sim_config, loop_map):
    traffic = [TrafficVehicle(id=0, lane=1, s=25.0, speed=10.0)]
    sim = HighwaySimulator(sim_config, loop_map, traffic)
    history = sim.run(n_ticks=300)

    assert len(history) == 300
    lanes = [r.state.lane for r in history]
    assert lanes[0] != 1
    assert all(abs(b - a) <= 1 for a, b in zip(lanes, lanes[1:]))

    step = sim_config.accel_step
    speeds = [r.state.reference_speed for r in history]
    assert all(abs(b - a) <= step + 1e-9 for a, b in zip(speeds, speeds[1:]))

    assert min(r.min_distance for r in history) > 2.0
    assert not sim.summary()['collision']


def test_stops_on_collision(sim_config, loop_map):
    traffic = [TrafficVehicle(id=0, lane=1, s=1.0, speed=0.0)]
    sim = HighwaySimulator(sim_config, loop_map, traffic)
    history = sim.run(n_ticks=50)

    assert len(history) == 1
    assert sim.summary()['collision']


def test_traffic_from_config(tmp_path):
    config = PlannerConfig(
        sim_traffic=[[0, 100.0, 12.0], [2, 300.0, 15.0]],
        sim_track_radius=300.0,
        sim_track_waypoints=120,
        output_path=str(tmp_path),
    )
    sim = HighwaySimulator(config)
    assert [v.lane for v in sim.traffic] == [0, 2]
    assert [v.id for v in sim.traffic] == [0, 1]
    assert len(sim.map) == 120


def test_save_results(sim_config, loop_map, tmp_path):
    sim = HighwaySimulator(sim_config, loop_map)
    sim.run(n_ticks=20)
    sim.save_results()

    out = tmp_path / "out"
    data = np.load(out / "history.npz")
    assert data["time"].shape == (20,)
    assert data["trajectory"].shape == (20, sim_config.horizon, 2)
    assert data["costs"].shape == (20, 3)

    with open(out / "summary.csv") as f:
        rows = list(csv.DictReader(f))
    assert int(rows[0]["cycles"]) == 20
    assert not (out / "dashboard.png").exists()


def test_save_results_with_dashboard(loop_map, tmp_path):
    config = PlannerConfig(output_path=str(tmp_path), visualization_enabled=True)
    sim = HighwaySimulator(config, make_loop_track(200.0, 90))
    sim.run(n_ticks=10)
    sim.save_results()
    assert (tmp_path / "dashboard.png").exists()
