import logging

logger = logging.getLogger(__name__)

HIGH_SEVERITY_SIZE = 100
MAX_HISTORY = 20


class LeakSentinel:
    """Finds allocator blocks whose owner is no longer a live process."""

    def __init__(self, auto_fix=False):
        self.auto_fix = auto_fix
        self.reset()

    def reset(self):
        self.status = 'SAFE'
        self.leaks = []
        self.scanned_blocks = 0
        self.history = []
        self.active_pids = set()
        self.scans = 0

    def toggle_auto_fix(self):
        self.auto_fix = not self.auto_fix
        return self.auto_fix

    def register_process(self, pid):
        self.active_pids.add(pid)

    def terminate_process_crash(self, pid):
        # the pid disappears but its memory stays allocated
        self.active_pids.discard(pid)

    def scan(self, blocks):
        self.scans += 1
        leaks = []
        leaked = 0
        for block in blocks:
            if block['type'] != 'PROCESS' or block['owner_id'] is None:
                continue
            if block['owner_id'] not in self.active_pids:
                leaks.append({
                    'block_id': block['id'],
                    'pid': block['owner_id'],
                    'size': block['size'],
                    'detected_at': self.scans,
                    'severity': 'HIGH' if block['size'] > HIGH_SEVERITY_SIZE else 'MEDIUM'
                })
                leaked += block['size']

        self.leaks = leaks
        self.scanned_blocks = len(blocks)
        self.status = 'ALERT' if leaks else 'SAFE'
        if leaks:
            self.history = (self.history + [{'timestamp': self.scans, 'memory_leaked': leaked}])[-MAX_HISTORY:]
            logger.warning("Detected %d orphaned blocks (%d bytes)", len(leaks), leaked)
        return [dict(leak) for leak in leaks]

    def purge(self, allocator):
        if not self.leaks:
            return 0

        purged = 0
        for pid in {leak['pid'] for leak in self.leaks}:
            allocator.deallocate(pid)
            purged += 1

        logger.info("Purged leaked memory of %d processes", purged)
        self.leaks = []
        self.status = 'SAFE'
        return purged

    def scan_allocator(self, allocator):
        leaks = self.scan(allocator.get_blocks())
        if self.auto_fix and leaks:
            self.purge(allocator)
        return leaks

    def get_state(self):
        return {
            'status': self.status,
            'leaks': [dict(leak) for leak in self.leaks],
            'scanned_blocks': self.scanned_blocks,
            'history': list(self.history),
            'auto_fix': self.auto_fix,
            'active_pids': sorted(self.active_pids, key=str)
        }
