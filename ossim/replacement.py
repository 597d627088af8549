"""
Reference-string page replacement simulator.

Runs a whole page reference string against a fixed number of frames, which
lets Optimal look ahead and makes per-step thrashing diagnostics possible.
"""
import logging

from .errors import InvalidConfiguration

logger = logging.getLogger(__name__)

ALGORITHMS = ['FIFO', 'LRU', 'Optimal', 'Clock', 'MRU', 'MFU']

WORKING_SET_WINDOW = 5
PFF_THRESHOLD = 2
FAULT_RATE_THRESHOLD = 50
MEMORY_PRESSURE_THRESHOLD = 1.3
CONSECUTIVE_FAULT_THRESHOLD = 2


def thrashing_metrics(hits, references, step, num_frames, window=WORKING_SET_WINDOW):
    """Window diagnostics for `step` given per-step hit flags and the pages referenced."""
    start = max(0, step - window + 1)
    recent = hits[start:step + 1]

    faults_in_window = sum(1 for hit in recent if not hit)
    pff = faults_in_window / min(window, step + 1)
    fault_rate = (faults_in_window / len(recent)) * 100 if recent else 0

    working_set_size = len(set(references[start:step + 1]))
    memory_pressure = working_set_size / num_frames

    consecutive = 0
    max_consecutive = 0
    for hit in recent:
        if not hit:
            consecutive += 1
            max_consecutive = max(max_consecutive, consecutive)
        else:
            consecutive = 0

    thrashing = (
        pff >= PFF_THRESHOLD or
        fault_rate >= FAULT_RATE_THRESHOLD or
        memory_pressure > MEMORY_PRESSURE_THRESHOLD or
        max_consecutive >= CONSECUTIVE_FAULT_THRESHOLD
    )

    return {
        'faults_in_window': faults_in_window,
        'page_fault_frequency': pff,
        'fault_rate': fault_rate,
        'working_set_size': working_set_size,
        'memory_pressure': memory_pressure,
        'max_consecutive_faults': max_consecutive,
        'is_thrashing': thrashing
    }


def _next_use(references, page, after):
    for i in range(after + 1, len(references)):
        if references[i] == page:
            return i
    return float('inf')


def _select_victim(algorithm, frames, load_times, access_times, access_counts,
                   references, index, clock):
    if algorithm == 'FIFO':
        return load_times.index(min(load_times))

    if algorithm == 'LRU':
        return access_times.index(min(access_times))

    if algorithm == 'MRU':
        return access_times.index(max(access_times))

    if algorithm == 'MFU':
        return access_counts.index(max(access_counts))

    if algorithm == 'Optimal':
        victim = 0
        max_distance = -1
        for idx, page in enumerate(frames):
            distance = _next_use(references, page, index)
            if distance > max_distance:
                max_distance = distance
                victim = idx
        return victim

    if algorithm == 'Clock':
        while True:
            pointer = clock['pointer']
            clock['pointer'] = (pointer + 1) % len(frames)
            if not clock['referenced'][pointer]:
                return pointer
            clock['referenced'][pointer] = False

    raise InvalidConfiguration(f"Unknown replacement algorithm: {algorithm}")


def simulate(references, num_frames, algorithm='FIFO'):
    if algorithm not in ALGORITHMS:
        raise InvalidConfiguration(f"Unknown replacement algorithm: {algorithm}")
    if num_frames < 1:
        raise InvalidConfiguration("num_frames must be at least 1")

    references = [int(page) for page in references]
    if any(page < 0 for page in references):
        raise InvalidConfiguration("Page references must be non-negative")

    frames = [None] * num_frames
    load_times = [0] * num_frames
    access_times = [0] * num_frames
    access_counts = [0] * num_frames
    clock = {'pointer': 0, 'referenced': [False] * num_frames}

    steps = []
    hits = []
    for index, page in enumerate(references):
        victim_page = None

        if page in frames:
            hit = True
            slot = frames.index(page)
            access_times[slot] = index
            access_counts[slot] += 1
        else:
            hit = False
            if None in frames:
                slot = frames.index(None)
            else:
                slot = _select_victim(algorithm, frames, load_times, access_times,
                                      access_counts, references, index, clock)
                victim_page = frames[slot]

            frames[slot] = page
            load_times[slot] = index
            access_times[slot] = index
            access_counts[slot] = 1

        clock['referenced'][slot] = True
        hits.append(hit)
        steps.append({
            'step': index,
            'page': page,
            'frames': list(frames),
            'hit': hit,
            'victim': victim_page,
            'thrashing': thrashing_metrics(hits, references, index, num_frames)
        })

    faults = hits.count(False)
    total = len(references)
    logger.debug("%s over %d references with %d frames: %d faults",
                 algorithm, total, num_frames, faults)

    return {
        'algorithm': algorithm,
        'num_frames': num_frames,
        'references': references,
        'steps': steps,
        'page_faults': faults,
        'hits': total - faults,
        'hit_rate': ((total - faults) / total) * 100 if total else 0,
        'fault_rate': (faults / total) * 100 if total else 0,
        'is_thrashing': steps[-1]['thrashing']['is_thrashing'] if steps else False
    }


def compare(references, num_frames, algorithms=None):
    results = {}
    for algorithm in algorithms or ALGORITHMS:
        run = simulate(references, num_frames, algorithm)
        results[algorithm] = {
            'page_faults': run['page_faults'],
            'hits': run['hits'],
            'hit_rate': run['hit_rate'],
            'fault_rate': run['fault_rate']
        }
    return results
