import numpy as np
import pytest

from bichsel_mc.core.geometry import BoxSensor
from bichsel_mc.core.particle import Particle, ParticleType
from bichsel_mc.core.records import CarrierType, Cluster, DepositedCharge, MCParticle
from bichsel_mc.transport.assembly import assemble, link_records


def _mc_particle(parent_index=-1):
    zero = np.zeros(3)
    return MCParticle(zero, zero, zero, zero, ParticleType.ELECTRON, 0.0, 0.0, parent_index)


def _deposit(particle_index):
    zero = np.zeros(3)
    return DepositedCharge(zero, zero, CarrierType.HOLE, 1, 0.0, particle_index)


def test_parent_must_precede_child():
    with pytest.raises(IndexError):
        link_records([_mc_particle(), _mc_particle(1)], [])
    with pytest.raises(IndexError):
        link_records([_mc_particle(0)], [])


def test_deposit_index_out_of_range():
    with pytest.raises(IndexError):
        link_records([_mc_particle()], [_deposit(1)])
    with pytest.raises(IndexError):
        link_records([_mc_particle()], [_deposit(-1)])


def test_links_resolve_to_objects():
    mc_particles = [_mc_particle(), _mc_particle(0), _mc_particle(1)]
    deposits = [_deposit(2), _deposit(0)]
    link_records(mc_particles, deposits)
    assert mc_particles[0].parent is None
    assert mc_particles[2].parent is mc_particles[1]
    assert mc_particles[1].parent is mc_particles[0]
    assert deposits[0].mc_particle is mc_particles[2]


def test_assemble_builds_carrier_pairs_in_global_frame():
    sensor = BoxSensor(thickness=0.1, pitch=0.025, offset=(1.0, 2.0, 3.0))
    primary = Particle(100.0, (0.0, 0.0, -0.05), (0.0, 0.0, 1.0), ParticleType.PROTON)
    primary.step(0.1)
    delta = Particle(0.01, (0.0, 0.0, 0.0), (1.0, 0.0, 0.0), ParticleType.ELECTRON,
                     time=primary.time, parent=0)
    clusters = [Cluster(12, (0.0, 0.0, -0.02), 0, 0.01),
                Cluster(3, (0.001, 0.0, 0.0), 1, 0.02)]

    mc_particles, deposits = assemble([primary, delta], clusters, sensor)

    assert np.allclose(mc_particles[0].global_end, [1.0, 2.0, 3.05])
    assert mc_particles[1].parent is mc_particles[0]
    assert len(deposits) == 2 * len(clusters)
    assert [d.carrier for d in deposits[:2]] == [CarrierType.ELECTRON, CarrierType.HOLE]
    assert [d.charge for d in deposits] == [12, 12, 3, 3]
    assert np.allclose(deposits[2].global_position, [1.001, 2.0, 3.0])
    assert deposits[3].mc_particle is mc_particles[1]


def test_cluster_rejects_empty_and_is_read_only():
    with pytest.raises(ValueError):
        Cluster(0, (0.0, 0.0, 0.0), 0, 0.0)
    cluster = Cluster(1, (0.0, 0.0, 0.0), 0, 0.0)
    with pytest.raises(ValueError):
        cluster.position[0] = 1.0
    with pytest.raises(AttributeError):
        cluster.pairs = 2
