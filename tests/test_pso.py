from __future__ import annotations

import itertools

import numpy as np
import pytest

from eyecalib.core.random_source import NumpyRandomSource
from eyecalib.optim.pso import Particle, ParticleSwarm
from eyecalib.params import SwarmParameters


def _sphere(center: np.ndarray):
    center = np.asarray(center, dtype=np.float64)

    def cost(x: np.ndarray) -> float:
        return float(np.sum((np.asarray(x) - center) ** 2))

    return cost


class _UpperRandomSource:
    """Always draws the upper end of the range."""

    def scalar(self, lo: float, hi: float) -> float:
        return float(hi)

    def vector(self, lo: np.ndarray, hi: np.ndarray) -> np.ndarray:
        return np.array(hi, dtype=np.float64)


def test_init_populates_swarm_inside_bounds():
    params = SwarmParameters(num_particles=12)
    swarm = ParticleSwarm(_sphere(np.zeros(6)), params, NumpyRandomSource(0))
    assert swarm.state == "uninitialized"
    swarm.init()
    assert swarm.state == "initialized"
    assert len(swarm.x) == len(swarm.p) == 12
    lo, hi = params.bounds[:, 0], params.bounds[:, 1]
    for xi, pi in zip(swarm.x, swarm.p):
        assert np.all(xi.position >= lo) and np.all(xi.position <= hi)
        assert np.all(np.abs(xi.velocity[:3]) <= 1e-4)
        assert np.all(np.abs(xi.velocity[3:]) <= np.deg2rad(1.0))
        assert np.array_equal(xi.position, pi.position)
        assert np.isinf(xi.cost)
        assert np.isfinite(pi.cost)
    assert swarm.g.cost == min(pi.cost for pi in swarm.p)
    assert swarm.iteration == 0


def test_step_requires_init():
    swarm = ParticleSwarm(_sphere(np.zeros(6)))
    with pytest.raises(RuntimeError):
        swarm.step()
    with pytest.raises(RuntimeError):
        swarm.finalize()


def test_positions_never_leave_bounds():
    bounds = np.array([[-0.01, 0.02]] * 3 + [[-0.1, 0.3]] * 3)
    params = SwarmParameters(num_particles=10, bounds=bounds, phi_p=0.5, phi_g=0.5)
    # The minimum lies outside the box, so particles keep pushing against it.
    swarm = ParticleSwarm(_sphere(np.full(6, 5.0)), params, NumpyRandomSource(1))
    swarm.init()
    for _ in range(300):
        swarm.step()
        pos = np.stack([xi.position for xi in swarm.x])
        assert np.all(pos >= bounds[:, 0]) and np.all(pos <= bounds[:, 1])


def test_stops_at_max_iter():
    swarm = ParticleSwarm(_sphere(np.full(6, 0.05)), SwarmParameters(num_particles=4, max_iter=7), NumpyRandomSource(2))
    swarm.init()
    results = [swarm.step() for _ in range(7)]
    assert results == [True] * 6 + [False]
    assert swarm.iteration == 7
    assert swarm.state == "terminated"


def test_stops_at_max_time():
    clock = itertools.count(start=0.0, step=1.0)
    params = SwarmParameters(num_particles=4, max_time=2.5)
    swarm = ParticleSwarm(_sphere(np.full(6, 0.05)), params, NumpyRandomSource(3), clock=lambda: next(clock))
    swarm.init()
    assert swarm.step()
    assert swarm.step()
    assert not swarm.step()
    assert swarm.elapsed == 3.0


def test_stops_at_cost_threshold():
    params = SwarmParameters(num_particles=4, cost_threshold=1e6)
    swarm = ParticleSwarm(_sphere(np.zeros(6)), params, NumpyRandomSource(4))
    swarm.init()
    assert not swarm.step()
    assert swarm.iteration == 1


def test_cost_threshold_is_inclusive():
    params = SwarmParameters(num_particles=3, cost_threshold=0.5)
    swarm = ParticleSwarm(lambda x: 0.5, params, NumpyRandomSource(5))
    swarm.init()
    assert not swarm.step()


def test_ties_keep_the_first_best():
    params = SwarmParameters(num_particles=5, max_iter=20)
    swarm = ParticleSwarm(lambda x: 1.0, params, NumpyRandomSource(6))
    swarm.init()
    first = swarm.p[0].position.copy()
    assert np.array_equal(swarm.g.position, first)
    while swarm.step():
        pass
    assert np.array_equal(swarm.finalize().position, first)


def test_stagnation_scatters_swarm_and_keeps_best():
    params = SwarmParameters(num_particles=10)
    swarm = ParticleSwarm(_sphere(np.array([0.01, -0.02, 0.03, 0.2, -0.1, 0.4])), params, NumpyRandomSource(7))
    swarm.init()

    # Collapse the whole swarm onto the global best with no momentum.
    for i, xi in enumerate(swarm.x):
        xi.position = swarm.g.position.copy()
        xi.velocity = np.zeros(6)
        swarm.p[i] = swarm.g.copy()
    best_cost = swarm.g.cost
    best_pos = swarm.g.position.copy()

    for _ in range(99):
        assert swarm.step()
    assert swarm.scatter_count == 0
    assert swarm.mean_distance_to_best() < params.stagnation_threshold

    assert swarm.step()
    assert swarm.iteration == 100
    assert swarm.scatter_count == 1
    assert swarm.mean_distance_to_best() > params.stagnation_threshold
    assert swarm.g.cost == best_cost
    assert np.array_equal(swarm.g.position, best_pos)


def test_global_best_updates_within_the_same_sweep():
    params = SwarmParameters(num_particles=2, bounds=np.array([[-10.0, 10.0]]))
    swarm = ParticleSwarm(lambda x: float(abs(x[0])), params, _UpperRandomSource(), velocity_range=np.array([1.0]))
    swarm.init()

    swarm.x = [
        Particle(position=np.array([1.0]), velocity=np.array([-1.25])),
        Particle(position=np.array([5.0]), velocity=np.array([0.0])),
    ]
    swarm.p = [
        Particle(position=np.array([1.0]), velocity=np.zeros(1), cost=1.0),
        Particle(position=np.array([5.0]), velocity=np.zeros(1), cost=5.0),
    ]
    swarm.g = swarm.p[0].copy()

    swarm.step()
    # Particle 0 lands on 0 (v0 = 0.8 * -1.25) and becomes the global best
    # before particle 1 moves: v1 = 0.1 * 1 * (0 - 5) = -0.5
    assert swarm.g.position[0] == pytest.approx(0.0)
    assert swarm.x[1].position[0] == pytest.approx(4.5)


def test_generic_minimizer_on_low_dimensional_problem():
    bounds = np.array([[-5.0, 5.0], [-5.0, 5.0]])
    params = SwarmParameters(num_particles=20, max_iter=400, bounds=bounds, cost_threshold=1e-8)
    swarm = ParticleSwarm(_sphere(np.array([1.5, -2.0])), params, NumpyRandomSource(8), velocity_range=np.array([0.1, 0.1]))
    swarm.init()
    while swarm.step():
        pass
    best = swarm.finalize()
    assert best.cost < 1e-4
    assert np.allclose(best.position, [1.5, -2.0], atol=1e-2)


def test_velocity_range_required_off_pose_dimension():
    with pytest.raises(ValueError):
        ParticleSwarm(_sphere(np.zeros(2)), SwarmParameters(bounds=np.array([[-1.0, 1.0], [-1.0, 1.0]])))


def test_finalize_is_idempotent_and_returns_a_copy():
    swarm = ParticleSwarm(_sphere(np.zeros(6)), SwarmParameters(num_particles=5, max_iter=5), NumpyRandomSource(9))
    swarm.init()
    while swarm.step():
        pass
    a = swarm.finalize()
    b = swarm.finalize()
    assert a.cost == b.cost
    assert np.array_equal(a.position, b.position)
    a.position[:] = 99.0
    assert not np.any(swarm.g.position == 99.0)


def test_seeded_runs_are_identical():
    params = SwarmParameters(num_particles=8, max_iter=150)
    runs = []
    for _ in range(2):
        swarm = ParticleSwarm(_sphere(np.full(6, 0.03)), params, NumpyRandomSource(123))
        swarm.init()
        while swarm.step():
            pass
        runs.append(swarm.finalize())
    assert runs[0].cost == runs[1].cost
    assert np.array_equal(runs[0].position, runs[1].position)
