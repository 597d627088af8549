import logging

logger = logging.getLogger(__name__)

MAX_LOGS = 50
FRAGMENTATION_RATIO = 0.6
FRAGMENTATION_PERCENT = 20
HIGH_QUEUE_DEPTH = 4
LOW_QUEUE_DEPTH = 2


class Optimizer:
    """Rule-based tuning advice over allocator and scheduler summaries.

    Only reads the summaries it is handed; `apply` goes through the engines'
    public setters.
    """

    def __init__(self):
        self.status = 'IDLE'
        self.recommendation = None
        self.logs = []

    def _log(self, *lines):
        self.logs = (self.logs + list(lines))[-MAX_LOGS:]

    def analyze(self, allocator_summary, scheduler_summary):
        logs = []
        recommendation = None

        total = allocator_summary['total_memory']
        free = allocator_summary['total_free_bytes']
        largest = allocator_summary['largest_hole_bytes']
        free_percent = free / total * 100 if total else 0
        fragmented = free > 0 and largest < free * FRAGMENTATION_RATIO

        logs.append(f"ANALYSIS: Memory Free: {free}KB ({free_percent:.1f}%)")
        logs.append(f"ANALYSIS: Largest Hole: {largest}KB")

        if fragmented and free_percent > FRAGMENTATION_PERCENT:
            scatter = 100 - largest / free * 100
            logs.append('WARNING: Critical Fragmentation Detected.')
            recommendation = {
                'id': 'rec-frag',
                'algorithm': 'BEST_FIT',
                'confidence': min(94, 85 + int(scatter // 10)),
                'reasoning': f"Detected {scatter:.0f}% scatter in free blocks. "
                             "'BEST_FIT' will minimize future hole creation.",
                'action_type': 'ALLOCATION'
            }
        elif allocator_summary['algorithm'] != 'FIRST_FIT' and not fragmented:
            logs.append('ANALYSIS: Memory structure is contiguous.')
            recommendation = {
                'id': 'rec-speed',
                'algorithm': 'FIRST_FIT',
                'confidence': 92,
                'reasoning': "Memory is currently defragmented. "
                             "'FIRST_FIT' finds a hole with the shortest scan.",
                'action_type': 'ALLOCATION'
            }

        if recommendation is None:
            depth = scheduler_summary['ready_count']
            algorithm = scheduler_summary['algorithm']
            logs.append(f"ANALYSIS: CPU Queue Depth: {depth}")

            if depth > HIGH_QUEUE_DEPTH and algorithm != 'RR':
                recommendation = {
                    'id': 'rec-cpu-load',
                    'algorithm': 'RR',
                    'confidence': 88,
                    'reasoning': f"High concurrency detected ({depth} processes). "
                                 "'RR' will prevent starvation.",
                    'action_type': 'SCHEDULER'
                }
            elif depth <= LOW_QUEUE_DEPTH and algorithm == 'RR':
                recommendation = {
                    'id': 'rec-cpu-eff',
                    'algorithm': 'FCFS',
                    'confidence': 75,
                    'reasoning': "Low system load. 'FCFS' eliminates context switch overhead.",
                    'action_type': 'SCHEDULER'
                }

        if recommendation:
            self.status = 'RECOMMENDING'
            logs.append(f"CALCULATION COMPLETE. Recommendation generated: {recommendation['algorithm']}")
        else:
            self.status = 'IDLE'
            logs.append('SYSTEM OPTIMAL. No changes required.')

        for line in logs:
            logger.info(line)
        self._log(*logs)
        self.recommendation = recommendation
        return dict(recommendation) if recommendation else None

    def apply(self, allocator, scheduler):
        recommendation = self.recommendation
        if recommendation is None:
            return False

        self._log(f"APPLYING OPTIMIZATION: {recommendation['algorithm']}...")
        if recommendation['action_type'] == 'ALLOCATION':
            allocator.set_algorithm(recommendation['algorithm'])
        else:
            scheduler.set_scheduler_algo(recommendation['algorithm'])

        self.status = 'IDLE'
        self.recommendation = None
        self._log('OPTIMIZATION SUCCESSFUL.')
        return True

    def reset(self):
        self.status = 'IDLE'
        self.recommendation = None
        self.logs = []

    def get_state(self):
        return {
            'status': self.status,
            'recommendation': dict(self.recommendation) if self.recommendation else None,
            'logs': list(self.logs)
        }
