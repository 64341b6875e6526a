import numpy as np
import pytest

from bichsel_mc.core.geometry import BoxSensor
from bichsel_mc.core.particle import Particle, ParticleType
from bichsel_mc.errors import ConfigurationError
from bichsel_mc.physics.scattering import delta_emission_cosine, elastic_cosine, rotate_to_frame
from bichsel_mc.transport.stepping import StepState, SteppingEngine


def _primary(sensor, energy=1000.0, particle_type=ParticleType.PION):
    return Particle(energy, (0.0, 0.0, -0.5 * sensor.sensor_thickness()),
                    (0.05, 0.0, 1.0), particle_type)


class _Recorder:
    """Collects the per-particle history of energies and directions."""

    def __init__(self):
        self.history = {}
        self.states = []

    def __call__(self, state, particle):
        self.states.append(state)
        self.history.setdefault(particle, []).append(
            (state, particle.energy, particle.direction.copy()))


def test_rotation_keeps_unit_length(rng):
    direction = np.array([0.0, 0.0, 1.0])
    for _ in range(10000):
        cost = elastic_cosine(0.01, rng.random())
        direction = rotate_to_frame(direction, cost, 2 * np.pi * rng.random())
        assert np.linalg.norm(direction) == pytest.approx(1.0, abs=1e-9)


def test_rotation_about_z_axis_is_polar_angle():
    direction = rotate_to_frame(np.array([0.0, 0.0, 1.0]), 0.5, 0.0)
    assert direction[2] == pytest.approx(0.5)
    direction = rotate_to_frame(np.array([0.0, 0.0, -1.0]), 1.0, 0.3)
    assert np.allclose(direction, [0.0, 0.0, -1.0])


def test_soft_delta_rays_are_emitted_near_90_degrees():
    assert delta_emission_cosine(20.0, 1000.0) < 0.01
    assert delta_emission_cosine(1e9, 0.1) == 1.0


def test_invalid_cuts_rejected(tables, thin_sensor):
    with pytest.raises(ConfigurationError):
        SteppingEngine(tables, thin_sensor, energy_threshold=0.0)
    with pytest.raises(ConfigurationError):
        SteppingEngine(tables, thin_sensor, energy_threshold=1.7, delta_energy_cut=-1.0)


def test_directions_unit_and_energy_non_increasing(tables, threshold):
    sensor = BoxSensor(thickness=0.05, pitch=0.025)
    recorder = _Recorder()
    engine = SteppingEngine(tables, sensor, threshold, delta_energy_cut=0.001,
                            on_step=recorder)
    rng = np.random.default_rng(11)
    for _ in range(20):
        engine.run(_primary(sensor), rng)

    assert StepState.INELASTIC in recorder.states
    assert StepState.ELASTIC in recorder.states
    for history in recorder.history.values():
        energies = np.array([energy for _, energy, _ in history])
        assert np.all(np.diff(energies) <= 0.0)
        assert np.all(energies >= 0.0)
        for _, _, direction in history:
            assert np.linalg.norm(direction) == pytest.approx(1.0, abs=1e-9)
        assert history[-1][0] in (StepState.ABSORBED, StepState.EXITED)


def test_clusters_have_positive_pairs(tables, thin_sensor, threshold, rng):
    engine = SteppingEngine(tables, thin_sensor, threshold)
    result = engine.run(_primary(thin_sensor), rng)
    assert len(result.clusters) > 0
    assert all(cluster.pairs > 0 for cluster in result.clusters)
    assert result.total_pairs == result.stats.pairs
    for cluster in result.clusters:
        assert thin_sensor.is_within_sensor(cluster.position)


def test_immediate_exit(tables, thin_sensor, threshold, rng):
    engine = SteppingEngine(tables, thin_sensor, threshold)
    start = (0.0, 0.0, 0.5 * thin_sensor.sensor_thickness())
    particle = Particle(1000.0, start, (0.0, 0.0, 1.0), ParticleType.PION)
    result = engine.run(particle, rng)

    assert len(result.mc_particles) == 1
    mcp = result.mc_particles[0]
    assert np.array_equal(mcp.local_start, mcp.local_end)
    assert mcp.time_end == mcp.time_start
    assert mcp.parent is None
    assert result.clusters == []
    assert result.deposits == []


def test_delta_rays_link_to_their_parent(tables, threshold):
    sensor = BoxSensor(thickness=0.1, pitch=0.025)
    engine = SteppingEngine(tables, sensor, threshold, delta_energy_cut=0.001)
    rng = np.random.default_rng(5)

    results = [engine.run(_primary(sensor, 120000.0, ParticleType.PROTON), rng)
               for _ in range(30)]
    results = [r for r in results if len(r.mc_particles) > 1]
    assert results, "expected delta rays above 1 keV in 100 um"

    for result in results:
        assert result.mc_particles[0].is_primary
        assert result.stats.deltas == len(result.mc_particles) - 1
        for i, mcp in enumerate(result.mc_particles[1:], start=1):
            assert mcp.particle_type is ParticleType.ELECTRON
            assert 0 <= mcp.parent_index < i
            assert mcp.parent is result.mc_particles[mcp.parent_index]
            parent_particle = result.particles[mcp.parent_index]
            # born on the parent's track, after it started
            assert mcp.time_start >= parent_particle.time_start
        for deposit in result.deposits:
            assert deposit.mc_particle is result.mc_particles[deposit.particle_index]


def test_energy_bookkeeping(tables, threshold):
    sensor = BoxSensor(thickness=0.05, pitch=0.025)
    engine = SteppingEngine(tables, sensor, threshold, delta_energy_cut=0.002)
    rng = np.random.default_rng(8)

    for _ in range(10):
        result = engine.run(_primary(sensor, 5.0, ParticleType.ELECTRON), rng)
        lost = sum(p.energy_start - p.energy for p in result.particles)
        deltas = sum(p.energy_start for p in result.particles[1:])
        assert result.stats.energy_loss * 1e-6 == pytest.approx(lost - deltas, rel=1e-9, abs=1e-12)


def test_absorbed_delta_deposits_all_its_energy(tables, threshold, rng):
    sensor = BoxSensor(thickness=1.0, pitch=0.025, size=(5.0, 5.0))
    engine = SteppingEngine(tables, sensor, threshold, delta_energy_cut=0.009)
    # 20 keV electron in the sensor centre: range of a few um
    electron = Particle(0.02, (0.0, 0.0, 0.0), (1.0, 0.0, 0.0), ParticleType.ELECTRON)
    result = engine.run(electron, rng)
    assert all(p.energy == pytest.approx(0.0, abs=1e-9) for p in result.particles)
    # delta energies are removed from the parent's loss and deposited by the deltas
    assert result.stats.energy_loss == pytest.approx(20000.0, rel=1e-9)


def test_same_seed_same_event(tables, thin_sensor, threshold):
    engine = SteppingEngine(tables, thin_sensor, threshold)
    first = engine.run(_primary(thin_sensor), np.random.default_rng(99))
    second = engine.run(_primary(thin_sensor), np.random.default_rng(99))
    assert [c.pairs for c in first.clusters] == [c.pairs for c in second.clusters]
    assert first.stats.as_dict() == second.stats.as_dict()


def test_slow_mode_runs(tables, thin_sensor, threshold, rng):
    engine = SteppingEngine(tables, thin_sensor, threshold, fast=False)
    result = engine.run(_primary(thin_sensor), rng)
    assert result.stats.pairs > 0
    assert all(cluster.pairs > 0 for cluster in result.clusters)


def test_histograms_record_steps_and_angles(tables, threshold):
    sensor = BoxSensor(thickness=0.1, pitch=0.025)
    engine = SteppingEngine(tables, sensor, threshold, delta_energy_cut=0.001,
                            histograms=True)
    rng = np.random.default_rng(17)
    for _ in range(10):
        result = engine.run(_primary(sensor, 120000.0, ParticleType.PROTON), rng)
        stats = result.stats
        assert len(stats.step_lengths) == stats.steps
        assert len(stats.elastic_cosines) == stats.elastic
        assert len(stats.delta_cosines) == stats.deltas
        assert all(step > 0.0 for step in stats.step_lengths)
        assert all(-1.0 <= c <= 1.0 + 1e-12 for c in stats.elastic_cosines + stats.delta_cosines)


def test_no_histograms_by_default(tables, thin_sensor, threshold, rng):
    engine = SteppingEngine(tables, thin_sensor, threshold)
    stats = engine.run(_primary(thin_sensor), rng).stats
    assert stats.steps > 0
    assert stats.step_lengths == []
    assert stats.elastic_cosines == []
