import pytest

from ossim.allocator import MemoryAllocator
from ossim.config import load_config
from ossim.index import create_app
from ossim.paging import PagingSimulator
from ossim.scheduler import CPUScheduler


def check_partition(allocator):
    blocks = allocator.blocks
    assert blocks[0]['start'] == 0
    for left, right in zip(blocks, blocks[1:]):
        assert left['start'] + left['size'] == right['start']
        assert not (left['type'] == 'HOLE' and right['type'] == 'HOLE')
    assert sum(b['size'] for b in blocks) == allocator.total_memory


def check_paging_consistency(sim):
    for page, entry in sim.page_table.items():
        assert entry['valid'] == (entry['frame_number'] is not None)
        if entry['valid']:
            assert sim.frames[entry['frame_number']]['page_number'] == page
    for index, frame in enumerate(sim.frames):
        if frame['page_number'] is not None:
            entry = sim.page_table[frame['page_number']]
            assert entry['valid'] and entry['frame_number'] == index
    pages = [e['page_number'] for e in sim.tlb]
    assert len(pages) <= sim.config['tlb_size']
    assert len(pages) == len(set(pages))
    for e in sim.tlb:
        assert sim.page_table[e['page_number']]['frame_number'] == e['frame_number']


@pytest.fixture
def allocator():
    return MemoryAllocator(total_memory=1000)


@pytest.fixture
def small_paging():
    # 16 pages of 256 bytes, 4 frames, 2 TLB entries
    return PagingSimulator(logical_size=4096, physical_size=1024, page_size=256, tlb_size=2)


@pytest.fixture
def scheduler():
    return CPUScheduler(algorithm='FCFS', time_quantum=4, num_frames=4, page_size=256)


@pytest.fixture
def client():
    app = create_app(load_config(environ={}, sched_frames=4))
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
