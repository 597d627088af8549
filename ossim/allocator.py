import copy
import logging

from .errors import InvalidConfiguration

logger = logging.getLogger(__name__)

ALGORITHMS = ['FIRST_FIT', 'BEST_FIT', 'WORST_FIT', 'NEXT_FIT']
PROCESS = 'PROCESS'
HOLE = 'HOLE'
MAX_LOGS = 50


def calc_stats(blocks, timestamp):
    holes = [b['size'] for b in blocks if b['type'] == HOLE]
    total_free = sum(holes)
    largest_hole = max(holes) if holes else 0
    return {
        'timestamp': timestamp,
        'total_free_bytes': total_free,
        'largest_hole_bytes': largest_hole,
        'external_fragmentation': total_free - largest_hole,
        'process_count': sum(1 for b in blocks if b['type'] == PROCESS)
    }


def find_candidate(blocks, size, algorithm, cursor=0):
    """Index of the hole `algorithm` would consume for `size`, or None."""
    candidate = None

    if algorithm == 'FIRST_FIT':
        for i, block in enumerate(blocks):
            if block['type'] == HOLE and block['size'] >= size:
                return i

    elif algorithm == 'BEST_FIT':
        min_diff = None
        for i, block in enumerate(blocks):
            if block['type'] == HOLE and block['size'] >= size:
                diff = block['size'] - size
                if min_diff is None or diff < min_diff:
                    min_diff = diff
                    candidate = i

    elif algorithm == 'WORST_FIT':
        max_diff = -1
        for i, block in enumerate(blocks):
            if block['type'] == HOLE and block['size'] >= size:
                diff = block['size'] - size
                if diff > max_diff:
                    max_diff = diff
                    candidate = i

    elif algorithm == 'NEXT_FIT':
        start = cursor if 0 <= cursor < len(blocks) else 0
        for i in list(range(start, len(blocks))) + list(range(0, start)):
            if blocks[i]['type'] == HOLE and blocks[i]['size'] >= size:
                return i

    else:
        raise InvalidConfiguration(f"Unknown allocation algorithm: {algorithm}")

    return candidate


def coalesce(blocks):
    merged = []
    for block in blocks:
        if merged and merged[-1]['type'] == HOLE and block['type'] == HOLE:
            merged[-1]['size'] += block['size']
        else:
            merged.append(dict(block))

    ptr = 0
    for block in merged:
        block['start'] = ptr
        ptr += block['size']
    return merged


class MemoryAllocator:
    def __init__(self, total_memory=10000, algorithm='FIRST_FIT'):
        if total_memory <= 0:
            raise InvalidConfiguration("total_memory must be positive")
        if algorithm not in ALGORITHMS:
            raise InvalidConfiguration(f"Unknown allocation algorithm: {algorithm}")

        self.total_memory = total_memory
        self.algorithm = algorithm
        self.reset()
        self.logs = ["Allocation System Initialized."]

    def reset(self):
        self._next_block_id = 0
        self.blocks = [self._make_block(0, self.total_memory, HOLE)]
        self.last_allocated_index = 0
        self.stats_history = [calc_stats(self.blocks, 0)]
        self.logs = ["Memory Reset."]

    def _make_block(self, start, size, block_type, owner_id=None, tag=None):
        self._next_block_id += 1
        if block_type == PROCESS:
            block_id = f"proc-{owner_id}-{self._next_block_id}"
        else:
            block_id = f"hole-{self._next_block_id}"
        return {
            'id': block_id,
            'start': start,
            'size': size,
            'type': block_type,
            'owner_id': owner_id,
            'tag': tag
        }

    def _log(self, message):
        logger.info(message)
        self.logs = [message] + self.logs[:MAX_LOGS - 1]

    def _record_stats(self):
        self.stats_history.append(calc_stats(self.blocks, len(self.stats_history)))

    def set_algorithm(self, algorithm):
        if algorithm not in ALGORITHMS:
            raise InvalidConfiguration(f"Unknown allocation algorithm: {algorithm}")
        self.algorithm = algorithm
        self._log(f"Algorithm switched to {algorithm}")

    def allocate(self, owner_id, size, tag=None):
        if size <= 0:
            self._log(f"Rejected allocation of {size}KB for PID {owner_id}")
            return False

        index = find_candidate(self.blocks, size, self.algorithm, self.last_allocated_index)
        if index is None:
            self._log(f"Failed to allocate {size}KB to PID {owner_id} (Fragmentation)")
            return False

        hole = self.blocks[index]
        process_block = self._make_block(hole['start'], size, PROCESS, owner_id, tag)
        remaining = hole['size'] - size

        if remaining == 0:
            self.blocks[index] = process_block
        else:
            rest = self._make_block(hole['start'] + size, remaining, HOLE)
            self.blocks[index:index + 1] = [process_block, rest]

        self.last_allocated_index = index
        self._record_stats()
        self._log(f"Allocated {size}KB to PID {owner_id} via {self.algorithm}")
        return True

    def deallocate(self, owner_id):
        owned = [b for b in self.blocks if b['type'] == PROCESS and b['owner_id'] == owner_id]
        if not owned:
            return

        for block in owned:
            block['type'] = HOLE
            block['owner_id'] = None
            block['tag'] = None

        self.blocks = coalesce(self.blocks)
        self._record_stats()
        self._log(f"Deallocated PID {owner_id}")

    def compact(self):
        processes = [b for b in self.blocks if b['type'] == PROCESS]
        if len(processes) == len(self.blocks):
            return

        current_start = 0
        compacted = []
        for block in processes:
            moved = dict(block)
            moved['start'] = current_start
            current_start += block['size']
            compacted.append(moved)

        free = self.total_memory - current_start
        compacted.append(self._make_block(current_start, free, HOLE))

        self.blocks = compacted
        self.last_allocated_index = 0
        self._record_stats()
        self._log(f"Memory Compacted. Free Space: {free}KB")

    def compare_algorithms(self, size):
        results = []
        for algorithm in ALGORITHMS:
            index = None
            if size > 0:
                index = find_candidate(self.blocks, size, algorithm, self.last_allocated_index)

            if index is None:
                results.append({'algorithm': algorithm, 'success': False,
                                'fragmentation': 0, 'efficiency': 0})
            else:
                hole_size = self.blocks[index]['size']
                results.append({
                    'algorithm': algorithm,
                    'success': True,
                    'fragmentation': hole_size - size,
                    'efficiency': size / hole_size
                })
        return results

    def reset_stats_to_current_state(self):
        self.stats_history = [calc_stats(self.blocks, 1)]

    def get_fragmentation_metrics(self):
        latest = calc_stats(self.blocks, len(self.stats_history))
        total_free = latest['total_free_bytes']
        allocated = self.total_memory - total_free

        if total_free == 0:
            external = 0
        else:
            external = latest['external_fragmentation'] / total_free

        return {
            'external': round(external, 4),
            'utilization': round(allocated / self.total_memory, 4),
            'total_free_bytes': total_free,
            'largest_hole_bytes': latest['largest_hole_bytes']
        }

    def get_blocks(self):
        return copy.deepcopy(self.blocks)

    def get_stats_history(self):
        return copy.deepcopy(self.stats_history)

    def get_logs(self):
        return list(self.logs)

    def summary(self):
        latest = self.stats_history[-1]
        return {
            'total_memory': self.total_memory,
            'algorithm': self.algorithm,
            'total_free_bytes': latest['total_free_bytes'],
            'largest_hole_bytes': latest['largest_hole_bytes'],
            'external_fragmentation': latest['external_fragmentation'],
            'process_count': latest['process_count']
        }

    def get_state(self):
        return {
            'total_memory': self.total_memory,
            'algorithm': self.algorithm,
            'blocks': self.get_blocks(),
            'last_allocated_index': self.last_allocated_index,
            'stats_history': self.get_stats_history(),
            'metrics': self.get_fragmentation_metrics(),
            'logs': self.get_logs()
        }
