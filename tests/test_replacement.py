import pytest

from ossim import replacement
from ossim.errors import InvalidConfiguration

BELADY = [1, 2, 3, 4, 1, 2, 5]
CLASSIC = [7, 0, 1, 2, 0, 3, 0, 4, 2, 3, 0, 3, 2, 1, 2, 0, 1, 7, 0, 1]


def hits(run):
    return [step['hit'] for step in run['steps']]


def test_fifo_trace():
    run = replacement.simulate(BELADY, 3, 'FIFO')
    assert hits(run) == [False] * 7
    assert run['page_faults'] == 7
    assert [step['frames'] for step in run['steps']] == [
        [1, None, None],
        [1, 2, None],
        [1, 2, 3],
        [4, 2, 3],
        [4, 1, 3],
        [4, 1, 2],
        [5, 1, 2],
    ]
    assert [step['victim'] for step in run['steps']] == [None, None, None, 1, 2, 3, 4]


def test_optimal_trace():
    run = replacement.simulate(BELADY, 3, 'Optimal')
    assert hits(run) == [False, False, False, False, True, True, False]
    assert run['steps'][3]['victim'] == 3
    assert run['page_faults'] == 5


def test_lru_trace():
    run = replacement.simulate(BELADY, 3, 'LRU')
    assert run['page_faults'] == 7


@pytest.mark.parametrize('references', [BELADY, CLASSIC])
@pytest.mark.parametrize('frames', [1, 3, 4])
def test_optimal_is_lower_bound(references, frames):
    results = replacement.compare(references, frames)
    for algorithm in replacement.ALGORITHMS:
        assert results['Optimal']['page_faults'] <= results[algorithm]['page_faults']


def test_classic_reference_string_counts():
    results = replacement.compare(CLASSIC, 3, ['FIFO', 'LRU', 'Optimal'])
    assert results['FIFO']['page_faults'] == 15
    assert results['LRU']['page_faults'] == 12
    assert results['Optimal']['page_faults'] == 9


def test_beladys_anomaly():
    references = [1, 2, 3, 4, 1, 2, 5, 1, 2, 3, 4, 5]
    assert replacement.simulate(references, 3, 'FIFO')['page_faults'] == 9
    assert replacement.simulate(references, 4, 'FIFO')['page_faults'] == 10


def test_mru_evicts_most_recent():
    run = replacement.simulate([1, 2, 3, 1, 4], 3, 'MRU')
    assert run['steps'][-1]['victim'] == 1


def test_mfu_evicts_most_frequent():
    run = replacement.simulate([1, 2, 2, 3, 4], 3, 'MFU')
    assert run['steps'][-1]['victim'] == 2


def test_clock_gives_second_chance():
    run = replacement.simulate([1, 2, 3, 4, 1, 5], 3, 'Clock')
    assert [step['victim'] for step in run['steps']] == [None, None, None, 1, 2, 3]


def test_rates():
    run = replacement.simulate([1, 1, 1, 2], 2, 'FIFO')
    assert run['hits'] == 2
    assert run['hit_rate'] == 50
    assert run['fault_rate'] == 50


def test_empty_reference_string():
    run = replacement.simulate([], 3, 'LRU')
    assert run['steps'] == []
    assert run['page_faults'] == 0
    assert not run['is_thrashing']


def test_thrashing_metrics_window():
    references = [1, 1, 1, 1, 1, 1]
    flags = [False, True, True, True, True, True]
    metrics = replacement.thrashing_metrics(flags, references, 5, 3)
    assert metrics['faults_in_window'] == 0
    assert metrics['page_fault_frequency'] == 0
    assert metrics['working_set_size'] == 1
    assert not metrics['is_thrashing']

    early = replacement.thrashing_metrics(flags, references, 0, 3)
    assert early['page_fault_frequency'] == 1
    assert early['fault_rate'] == 100
    assert early['is_thrashing']


def test_scattered_faults_are_not_thrashing():
    references = [1, 2, 1, 3, 2]
    flags = [False, True, True, False, True]
    metrics = replacement.thrashing_metrics(flags, references, 4, 4)
    assert metrics['faults_in_window'] == 2
    assert metrics['page_fault_frequency'] == pytest.approx(0.4)
    assert metrics['fault_rate'] == pytest.approx(40)
    assert metrics['max_consecutive_faults'] == 1
    assert metrics['working_set_size'] == 3
    assert not metrics['is_thrashing']


def test_thrashing_on_memory_pressure():
    references = [1, 2, 3, 4, 5]
    flags = [True, False, True, False, True]
    metrics = replacement.thrashing_metrics(flags, references, 4, 3)
    assert metrics['memory_pressure'] == pytest.approx(5 / 3)
    assert metrics['max_consecutive_faults'] == 1
    assert metrics['is_thrashing']


def test_invalid_arguments():
    with pytest.raises(InvalidConfiguration):
        replacement.simulate([1, 2], 3, 'LFU')
    with pytest.raises(InvalidConfiguration):
        replacement.simulate([1, 2], 0, 'FIFO')
    with pytest.raises(InvalidConfiguration):
        replacement.simulate([1, -2], 2, 'FIFO')
