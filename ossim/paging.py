import copy
import logging
import random

from .errors import InvalidConfiguration, InvalidAddress
from .replacement import thrashing_metrics

logger = logging.getLogger(__name__)

REPLACEMENT_ALGORITHMS = ['FIFO', 'LRU', 'Clock', 'Optimal']
TLB_POLICIES = ['FIFO', 'LRU']
MAX_LOGS = 100
MAX_HISTORY = 200
KEPT_HISTORY = 100
HISTORY_KEYS = ('access_history', 'page_history', 'tlb_hit_history', 'page_fault_history')

DEFAULT_CONFIG = {
    'logical_size': 65536,
    'physical_size': 32768,
    'page_size': 4096,
    'tlb_size': 4
}


def _is_power_of_two(value):
    return isinstance(value, int) and value > 0 and value & (value - 1) == 0


def build_config(logical_size, physical_size, page_size, tlb_size):
    if not _is_power_of_two(page_size):
        raise InvalidConfiguration(f"Page size must be a power of two, got {page_size}")
    if not isinstance(logical_size, int) or logical_size <= 0 or logical_size % page_size:
        raise InvalidConfiguration("Logical address space must be a positive multiple of the page size")
    if not isinstance(physical_size, int) or physical_size <= 0 or physical_size % page_size:
        raise InvalidConfiguration("Physical memory must be a positive multiple of the page size")
    if not isinstance(tlb_size, int) or tlb_size < 1:
        raise InvalidConfiguration("TLB must hold at least one entry")

    num_pages = logical_size // page_size
    if not _is_power_of_two(num_pages):
        raise InvalidConfiguration(f"Number of pages must be a power of two, got {num_pages}")

    return {
        'logical_size': logical_size,
        'physical_size': physical_size,
        'page_size': page_size,
        'tlb_size': tlb_size,
        'num_pages': num_pages,
        'num_frames': physical_size // page_size,
        'offset_bits': page_size.bit_length() - 1,
        'page_number_bits': num_pages.bit_length() - 1
    }


def empty_stats():
    return {
        'total_accesses': 0,
        'page_faults': 0,
        'tlb_hits': 0,
        'tlb_misses': 0,
        'dirty_writes': 0,
        'page_fault_rate': 0.0,
        'tlb_hit_rate': 0.0,
        'page_fault_history': [],
        'tlb_hit_history': [],
        'access_history': [],
        'page_history': []
    }


class PagingSimulator:
    def __init__(self, logical_size=65536, physical_size=32768, page_size=4096, tlb_size=4,
                 replacement_algo='FIFO', tlb_policy='FIFO', seed=0):
        self.config = build_config(logical_size, physical_size, page_size, tlb_size)
        self._check_choice(replacement_algo, REPLACEMENT_ALGORITHMS, 'replacement algorithm')
        self._check_choice(tlb_policy, TLB_POLICIES, 'TLB policy')

        self.replacement_algo = replacement_algo
        self.tlb_policy = tlb_policy
        self.rng = random.Random(seed)
        self.logs = ['Paging system initialized.']
        self._init_tables()
        self.stats = empty_stats()

    def _check_choice(self, value, choices, label):
        if value not in choices:
            raise InvalidConfiguration(f"Unknown {label}: {value}")

    def _init_tables(self):
        self.page_table = {
            page: {
                'frame_number': None,
                'valid': False,
                'referenced': False,
                'dirty': False,
                'loaded_at': 0,
                'last_access_time': 0,
                'owner_id': None
            } for page in range(self.config['num_pages'])
        }
        self.frames = [self._free_frame() for _ in range(self.config['num_frames'])]
        self.tlb = []
        self.clock_pointer = 0
        self.time = 0
        self.tlb_counter = 0
        self.last_page_fault = None

    def _free_frame(self):
        return {
            'page_number': None,
            'owner_id': None,
            'loaded_at': 0,
            'last_access_time': 0,
            'referenced': False
        }

    def _log(self, message):
        logger.info(message)
        self.logs = [f"[{self.stats['total_accesses']}] {message}"] + self.logs[:MAX_LOGS - 1]

    def set_memory_config(self, **partial):
        unknown = set(partial) - set(DEFAULT_CONFIG)
        if unknown:
            raise InvalidConfiguration(f"Unknown config keys: {', '.join(sorted(unknown))}")

        current = {key: self.config[key] for key in DEFAULT_CONFIG}
        current.update(partial)
        self.config = build_config(**current)

        self._init_tables()
        self.stats = empty_stats()
        self._log(f"Memory reconfigured: {self.config['num_pages']} pages, "
                  f"{self.config['num_frames']} frames")

    def set_replacement_algo(self, algorithm):
        self._check_choice(algorithm, REPLACEMENT_ALGORITHMS, 'replacement algorithm')
        self.replacement_algo = algorithm
        self._log(f"Page replacement algorithm: {algorithm}")

    def set_tlb_policy(self, policy):
        self._check_choice(policy, TLB_POLICIES, 'TLB policy')
        self.tlb_policy = policy
        self._log(f"TLB replacement policy: {policy}")

    def reset(self):
        self._init_tables()
        self.stats = empty_stats()
        self.logs = ['System reset.']

    def check_address(self, logical_address):
        if isinstance(logical_address, bool) or not isinstance(logical_address, int):
            raise InvalidAddress(f"Invalid address: {logical_address!r} is not an integer")
        if not 0 <= logical_address < self.config['logical_size']:
            raise InvalidAddress(f"Invalid address: {logical_address} outside "
                                 f"[0, {self.config['logical_size']})")

    def access_memory(self, logical_address, owner_id=1, operation='R', future_accesses=None):
        """Translate one logical address, loading the page on a fault.

        Returns a ``(result, error)`` pair. ``future_accesses`` is the list of
        page numbers still to come and is only consulted by Optimal.
        """
        try:
            self.check_address(logical_address)
        except InvalidAddress as e:
            return None, str(e)

        self.time += 1
        now = self.time
        offset_bits = self.config['offset_bits']
        page_number = logical_address >> offset_bits
        offset = logical_address & ((1 << offset_bits) - 1)

        steps = [{
            'step': 1,
            'name': 'extract',
            'title': 'Extract Page Number & Offset',
            'description': f"Logical Address: {logical_address} (0x{logical_address:X})",
            'data': {
                'logical_address': logical_address,
                'page_number': page_number,
                'offset': offset,
                'binary': format(logical_address, 'b').zfill(
                    offset_bits + self.config['page_number_bits'])
            },
            'status': 'complete'
        }]

        tlb_hit = False
        page_fault = False
        replaced_page = None
        frame_number = None

        tlb_entry = next((e for e in self.tlb if e['page_number'] == page_number), None)
        if tlb_entry:
            tlb_hit = True
            frame_number = tlb_entry['frame_number']
            if self.tlb_policy == 'LRU':
                tlb_entry['last_access_time'] = now
            steps.append(self._step(steps, 'tlb_lookup', 'TLB Hit!',
                                    f"Page {page_number} found in TLB -> Frame {frame_number}",
                                    {'page_number': page_number, 'frame_number': frame_number}))
        else:
            steps.append(self._step(steps, 'tlb_lookup', 'TLB Miss',
                                    f"Page {page_number} not in TLB. Checking page table...",
                                    {'page_number': page_number}))

            entry = self.page_table[page_number]
            if entry['valid']:
                frame_number = entry['frame_number']
                steps.append(self._step(steps, 'page_table_lookup', 'Page Table Hit',
                                        f"Page {page_number} is valid -> Frame {frame_number}",
                                        {'page_number': page_number, 'frame_number': frame_number}))
            else:
                page_fault = True
                steps.append(self._step(steps, 'page_fault', 'Page Fault!',
                                        f"Page {page_number} is not in memory. Loading...",
                                        {'page_number': page_number}, status='error'))
                frame_number, replaced_page = self.handle_page_fault(
                    page_number, owner_id, now, steps, future_accesses)

            self.update_tlb(page_number, frame_number, now)

        self.update_access_info(page_number, frame_number, now, operation)

        physical_address = (frame_number << offset_bits) | offset
        steps.append(self._step(steps, 'address_calculation', 'Physical Address Generated',
                                f"Frame {frame_number} + Offset {offset} = "
                                f"Physical Address {physical_address}",
                                {'frame_number': frame_number, 'offset': offset,
                                 'physical_address': physical_address}))

        self.record_access(logical_address, page_number, tlb_hit, page_fault)

        self._log(f"Access {logical_address}: Page {page_number} -> Frame {frame_number} "
                  f"(TLB: {'HIT' if tlb_hit else 'MISS'}, PF: {'YES' if page_fault else 'NO'})")

        return {
            'success': True,
            'logical_address': logical_address,
            'page_number': page_number,
            'offset': offset,
            'frame': frame_number,
            'physical_address': physical_address,
            'tlb_hit': tlb_hit,
            'page_fault': page_fault,
            'replaced_page': replaced_page,
            'translation_steps': steps
        }, None

    def _step(self, steps, name, title, description, data, status='complete'):
        return {
            'step': len(steps) + 1,
            'name': name,
            'title': title,
            'description': description,
            'data': data,
            'status': status
        }

    def handle_page_fault(self, page_number, owner_id, now, steps, future_accesses=None):
        replaced_page = None
        frame_number = next(
            (i for i, f in enumerate(self.frames) if f['page_number'] is None), None)

        if frame_number is None:
            frame_number = self.select_victim_frame(future_accesses)
            replaced_page = self.evict_page(frame_number, steps)
            steps.append(self._step(steps, 'page_replacement', 'Page Replacement',
                                    f"Replaced page {replaced_page} with page {page_number} "
                                    f"using {self.replacement_algo}",
                                    {'victim_page': replaced_page, 'new_page': page_number,
                                     'algorithm': self.replacement_algo}))

        self.frames[frame_number] = {
            'page_number': page_number,
            'owner_id': owner_id,
            'loaded_at': now,
            'last_access_time': now,
            'referenced': True
        }
        self.page_table[page_number].update({
            'frame_number': frame_number,
            'valid': True,
            'referenced': True,
            'dirty': False,
            'loaded_at': now,
            'last_access_time': now,
            'owner_id': owner_id
        })

        steps.append(self._step(steps, 'page_load', 'Page Loaded',
                                f"Loaded page {page_number} of process {owner_id} "
                                f"into frame {frame_number}.",
                                {'page_number': page_number, 'frame_number': frame_number}))

        self.last_page_fault = {
            'page_number': page_number,
            'replaced_page': replaced_page,
            'timestamp': now
        }
        return frame_number, replaced_page

    def select_victim_frame(self, future_accesses=None):
        if self.replacement_algo == 'LRU':
            return self.select_lru_victim()
        elif self.replacement_algo == 'Clock':
            return self.select_clock_victim()
        elif self.replacement_algo == 'Optimal' and future_accesses is not None:
            return self.select_optimal_victim(future_accesses)
        # Optimal without lookahead degrades to FIFO
        return self.select_fifo_victim()

    def select_fifo_victim(self):
        return min(range(len(self.frames)), key=lambda i: self.frames[i]['loaded_at'])

    def select_lru_victim(self):
        return min(range(len(self.frames)), key=lambda i: self.frames[i]['last_access_time'])

    def select_clock_victim(self):
        num_frames = len(self.frames)
        while True:
            pointer = self.clock_pointer
            self.clock_pointer = (pointer + 1) % num_frames
            if not self.frames[pointer]['referenced']:
                return pointer
            self.frames[pointer]['referenced'] = False
            self.page_table[self.frames[pointer]['page_number']]['referenced'] = False

    def select_optimal_victim(self, future_accesses):
        victim = 0
        farthest = -1
        for i, frame in enumerate(self.frames):
            try:
                next_use = future_accesses.index(frame['page_number'])
            except ValueError:
                return i
            if next_use > farthest:
                farthest = next_use
                victim = i
        return victim

    def evict_page(self, frame_number, steps):
        victim_page = self.frames[frame_number]['page_number']
        entry = self.page_table[victim_page]

        if entry['dirty']:
            self.stats['dirty_writes'] += 1
            steps.append(self._step(steps, 'write_back', 'Write Back',
                                    f"Writing dirty page {victim_page} back to disk.",
                                    {'page_number': victim_page}))

        entry.update({
            'frame_number': None,
            'valid': False,
            'referenced': False,
            'dirty': False,
            'owner_id': None
        })
        self.frames[frame_number] = self._free_frame()
        self.clear_tlb_entry(victim_page)
        return victim_page

    def update_tlb(self, page_number, frame_number, now):
        self.clear_tlb_entry(page_number)

        if len(self.tlb) >= self.config['tlb_size']:
            if self.tlb_policy == 'FIFO':
                evicted = min(self.tlb, key=lambda e: e['insertion_order'])
            else:
                evicted = min(self.tlb, key=lambda e: e['last_access_time'])
            self.tlb.remove(evicted)

        self.tlb_counter += 1
        self.tlb.append({
            'page_number': page_number,
            'frame_number': frame_number,
            'last_access_time': now,
            'insertion_order': self.tlb_counter
        })

    def clear_tlb_entry(self, page_number):
        self.tlb = [e for e in self.tlb if e['page_number'] != page_number]

    def update_access_info(self, page_number, frame_number, now, operation):
        entry = self.page_table[page_number]
        entry['referenced'] = True
        entry['last_access_time'] = now
        if operation == 'W':
            entry['dirty'] = True

        frame = self.frames[frame_number]
        frame['referenced'] = True
        frame['last_access_time'] = now

    def record_access(self, logical_address, page_number, tlb_hit, page_fault):
        stats = self.stats
        stats['total_accesses'] += 1
        stats['access_history'].append(logical_address)
        stats['page_history'].append(page_number)

        if tlb_hit:
            stats['tlb_hits'] += 1
            stats['tlb_hit_history'].append(1)
        else:
            stats['tlb_misses'] += 1
            stats['tlb_hit_history'].append(0)

        if page_fault:
            stats['page_faults'] += 1
            stats['page_fault_history'].append(1)
        else:
            stats['page_fault_history'].append(0)

        stats['tlb_hit_rate'] = stats['tlb_hits'] / stats['total_accesses'] * 100
        stats['page_fault_rate'] = stats['page_faults'] / stats['total_accesses'] * 100

        for key in HISTORY_KEYS:
            if len(stats[key]) > MAX_HISTORY:
                stats[key] = stats[key][-KEPT_HISTORY:]

    def run_sequence(self, addresses, owner_id=1):
        """Access every address in order, feeding Optimal the remaining pages."""
        for address in addresses:
            self.check_address(address)
        offset_bits = self.config['offset_bits']
        pages = [address >> offset_bits for address in addresses]
        results = []
        for i, address in enumerate(addresses):
            result, error = self.access_memory(address, owner_id, future_accesses=pages[i + 1:])
            results.append({'virtual_address': address, 'result': result, 'error': error})
        return results

    def random_access(self, count=1, owner_id=1):
        results = []
        for _ in range(count):
            address = self.rng.randrange(self.config['logical_size'])
            result, error = self.access_memory(address, owner_id)
            results.append({'virtual_address': address, 'result': result, 'error': error})
        return results

    def thrashing_status(self):
        history = self.stats['page_fault_history']
        if not history:
            return None
        hits = [fault == 0 for fault in history]
        return thrashing_metrics(hits, self.stats['page_history'], len(hits) - 1,
                                 self.config['num_frames'])

    def get_page_table(self):
        return copy.deepcopy(self.page_table)

    def get_tlb(self):
        return copy.deepcopy(self.tlb)

    def get_frames(self):
        return copy.deepcopy(self.frames)

    def get_stats(self):
        return copy.deepcopy(self.stats)

    def get_memory_state(self):
        return {
            'config': dict(self.config),
            'replacement_algo': self.replacement_algo,
            'tlb_policy': self.tlb_policy,
            'page_table': {str(page): entry for page, entry in self.get_page_table().items()},
            'tlb': self.get_tlb(),
            'frames': self.get_frames(),
            'clock_pointer': self.clock_pointer,
            'stats': self.get_stats(),
            'last_page_fault': copy.deepcopy(self.last_page_fault),
            'thrashing': self.thrashing_status(),
            'logs': list(self.logs)
        }
