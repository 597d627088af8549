import copy
import itertools
import logging
import math

from .errors import InvalidConfiguration

logger = logging.getLogger(__name__)

ALGORITHMS = ['FCFS', 'RR', 'PRIORITY']
READY = 'READY'
RUNNING = 'RUNNING'
WAITING = 'WAITING'
COMPLETED = 'COMPLETED'
MAX_LOGS = 50


def current_run_duration(gantt, pid):
    if gantt and gantt[-1]['pid'] == pid:
        return gantt[-1]['end_time'] - gantt[-1]['start_time']
    return 0


class CPUScheduler:
    """Tick-driven CPU scheduler with a small on-demand frame pool.

    The frame pool is the scheduler's own: a running process claims at most
    one free frame per context switch until it holds ``ceil(size / page_size)``
    pages. There is no swap-out; a full pool is only logged.
    """

    def __init__(self, algorithm='FCFS', time_quantum=2, num_frames=16, page_size=256,
                 page_numbers=None):
        if algorithm not in ALGORITHMS:
            raise InvalidConfiguration(f"Unknown scheduling algorithm: {algorithm}")
        if time_quantum < 1:
            raise InvalidConfiguration("Time quantum must be at least 1")
        if num_frames < 0 or page_size < 1:
            raise InvalidConfiguration("Frame pool needs a non-negative frame count and positive page size")

        self.config = {
            'algorithm': algorithm,
            'time_quantum': time_quantum,
            'is_paused': False
        }
        self.num_frames = num_frames
        self.page_size = page_size
        self._page_numbers_factory = page_numbers or itertools.count
        self.snapshots = []
        self.reset_system()

    def reset_system(self):
        self.global_clock = 0
        self.process_queue = []
        self.completed_processes = []
        self.active_process_id = None
        self.gantt_history = []
        self.ram = [None] * self.num_frames
        self.page_table = {}
        self.page_numbers = self._page_numbers_factory()
        self.context_switches = 0
        self.busy_ticks = 0
        self.swap_events = 0
        self.rr_resume_index = None
        self.logs = ["System Reset Complete."]

    def _log(self, message):
        logger.info(message)
        self.logs = [f"[T={self.global_clock}] {message}"] + self.logs[:MAX_LOGS - 1]

    def set_scheduler_algo(self, algorithm):
        if algorithm not in ALGORITHMS:
            raise InvalidConfiguration(f"Unknown scheduling algorithm: {algorithm}")
        self.config['algorithm'] = algorithm
        self._log(f"Scheduler switched to {algorithm}")

    def set_time_quantum(self, quantum):
        if quantum < 1:
            raise InvalidConfiguration("Time quantum must be at least 1")
        self.config['time_quantum'] = quantum

    def toggle_pause(self):
        self.config['is_paused'] = not self.config['is_paused']
        return self.config['is_paused']

    def _find(self, pid):
        return next((p for p in self.process_queue if p['pid'] == pid), None)

    def add_process(self, pid, burst_time, priority=0, size=0, arrival_time=None, tag=None):
        if burst_time < 1:
            self._log(f"Rejected process {pid}: burst must be positive")
            return False
        if self._find(pid) or any(p['pid'] == pid for p in self.completed_processes):
            self._log(f"Rejected process {pid}: duplicate PID")
            return False

        if arrival_time is None:
            arrival_time = self.global_clock
        elif isinstance(arrival_time, bool) or not isinstance(arrival_time, int):
            self._log(f"Rejected process {pid}: arrival time must be an integer")
            return False
        elif not 0 <= arrival_time <= self.global_clock:
            self._log(f"Rejected process {pid}: arrival time {arrival_time} is not in [0, {self.global_clock}]")
            return False

        self.process_queue.append({
            'pid': pid,
            'arrival_time': arrival_time,
            'burst_time': burst_time,
            'priority': priority,
            'size': size,
            'tag': tag,
            'remaining_time': burst_time,
            'state': READY,
            'start_time': None,
            'completion_time': None,
            'waiting_time': 0,
            'turnaround_time': 0,
            'owned_pages': []
        })
        self._log(f"Process {pid} Added (Burst: {burst_time}, Pri: {priority})")
        return True

    def select_next(self, ready):
        algorithm = self.config['algorithm']

        if algorithm == 'FCFS':
            return min(ready, key=lambda p: p['arrival_time'])['pid']

        if algorithm == 'PRIORITY':
            return min(ready, key=lambda p: (p['priority'], p['arrival_time']))['pid']

        # RR
        active = self.active_process_id
        if active is None:
            index = self.rr_resume_index or 0
            return ready[index % len(ready)]['pid']

        if current_run_duration(self.gantt_history, active) < self.config['time_quantum']:
            return active

        position = next(i for i, p in enumerate(ready) if p['pid'] == active)
        return ready[(position + 1) % len(ready)]['pid']

    def tick(self):
        if self.config['is_paused']:
            return

        ready = [p for p in self.process_queue if p['state'] in (READY, RUNNING)]
        if not ready:
            self.global_clock += 1
            return

        selected_pid = self.select_next(ready)

        if selected_pid != self.active_process_id:
            self.context_switch(selected_pid)

        last = self.gantt_history[-1] if self.gantt_history else None
        if last and last['pid'] == selected_pid and last['end_time'] == self.global_clock:
            last['end_time'] = self.global_clock + 1
        else:
            self.gantt_history.append({
                'pid': selected_pid,
                'start_time': self.global_clock,
                'end_time': self.global_clock + 1
            })

        running = self._find(selected_pid)
        running['remaining_time'] -= 1
        self.busy_ticks += 1

        if running['remaining_time'] <= 0:
            position = next(i for i, p in enumerate(ready) if p is running)
            self.complete(running, position)

        for process in self.process_queue:
            if process['state'] == READY:
                process['waiting_time'] += 1

        self.global_clock += 1

    def context_switch(self, pid):
        previous = self._find(self.active_process_id) if self.active_process_id is not None else None
        if previous and previous['state'] == RUNNING:
            previous['state'] = READY

        process = self._find(pid)
        process['state'] = RUNNING
        if process['start_time'] is None:
            process['start_time'] = self.global_clock

        self.active_process_id = pid
        self.context_switches += 1
        self.allocate_on_demand(process)

    def allocate_on_demand(self, process):
        needed = math.ceil(process['size'] / self.page_size)
        if len(process['owned_pages']) >= needed:
            return

        free_frame = next((i for i, page in enumerate(self.ram) if page is None), None)
        if free_frame is None:
            self.swap_events += 1
            self._log(f"Memory Full! Swapping needed for PID {process['pid']}")
            return

        page_number = next(self.page_numbers)
        self.ram[free_frame] = page_number
        self.page_table[page_number] = {
            'frame_number': free_frame,
            'valid': True,
            'referenced': True,
            'dirty': False,
            'loaded_at': self.global_clock,
            'last_access_time': self.global_clock,
            'owner_id': process['pid']
        }
        process['owned_pages'].append(page_number)
        self._log(f"Allocated Frame {free_frame} to PID {process['pid']}")

    def release_memory(self, process):
        for page_number in process['owned_pages']:
            entry = self.page_table.pop(page_number, None)
            if entry is not None:
                self.ram[entry['frame_number']] = None

    def complete(self, process, ready_position):
        process['state'] = COMPLETED
        process['completion_time'] = self.global_clock + 1
        process['turnaround_time'] = process['completion_time'] - process['arrival_time']
        process['waiting_time'] = process['turnaround_time'] - process['burst_time']

        self.release_memory(process)
        self.process_queue.remove(process)
        self.completed_processes.append(process)
        self.active_process_id = None
        # the successor now sits where the finished process was
        self.rr_resume_index = ready_position
        self._log(f"PID {process['pid']} Completed.")

    def take_snapshot(self):
        completed = self.completed_processes
        if not completed or self.global_clock == 0:
            return None

        snapshot = {
            'id': len(self.snapshots) + 1,
            'algorithm': self.config['algorithm'],
            'global_clock': self.global_clock,
            'avg_wait': sum(p['waiting_time'] for p in completed) / len(completed),
            'avg_turnaround': sum(p['turnaround_time'] for p in completed) / len(completed),
            'throughput': len(completed) / self.global_clock,
            'cpu_util': self.busy_ticks / self.global_clock * 100,
            'completed_count': len(completed)
        }
        self.snapshots.append(snapshot)
        self._log(f"Snapshot Taken: {self.config['algorithm']}")
        return dict(snapshot)

    def get_process_queue(self):
        return copy.deepcopy(self.process_queue)

    def get_completed_processes(self):
        return copy.deepcopy(self.completed_processes)

    def get_gantt_history(self):
        return copy.deepcopy(self.gantt_history)

    def get_snapshots(self):
        return copy.deepcopy(self.snapshots)

    def summary(self):
        return {
            'algorithm': self.config['algorithm'],
            'time_quantum': self.config['time_quantum'],
            'global_clock': self.global_clock,
            'ready_count': sum(1 for p in self.process_queue if p['state'] == READY),
            'active_process_id': self.active_process_id,
            'completed_count': len(self.completed_processes)
        }

    def get_state(self):
        return {
            'config': dict(self.config),
            'global_clock': self.global_clock,
            'active_process_id': self.active_process_id,
            'process_queue': self.get_process_queue(),
            'completed_processes': self.get_completed_processes(),
            'gantt_history': self.get_gantt_history(),
            'snapshots': self.get_snapshots(),
            'ram': list(self.ram),
            'context_switches': self.context_switches,
            'swap_events': self.swap_events,
            'logs': list(self.logs)
        }
