import logging

from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .allocator import MemoryAllocator
from .config import load_config
from .errors import SimulatorError
from .optimizer import Optimizer
from .paging import PagingSimulator
from . import replacement
from .scheduler import CPUScheduler
from .sentinel import LeakSentinel

logger = logging.getLogger(__name__)


class Machine:
    """One simulated machine: independent engines plus their outside consumers."""

    def __init__(self, config):
        self.config = config
        self.allocator = MemoryAllocator(total_memory=config['total_memory'])
        self.paging = PagingSimulator(
            logical_size=config['logical_size'],
            physical_size=config['physical_size'],
            page_size=config['page_size'],
            tlb_size=config['tlb_size'],
            seed=config['seed']
        )
        self.scheduler = CPUScheduler(
            time_quantum=config['time_quantum'],
            num_frames=config['sched_frames'],
            page_size=config['sched_page_size']
        )
        self.optimizer = Optimizer()
        self.sentinel = LeakSentinel()


def _json():
    return request.get_json(silent=True) or {}


def _required(data, *keys):
    missing = [key for key in keys if data.get(key) is None]
    if missing:
        raise SimulatorError(f"{', '.join(missing)} required.")
    return [data[key] for key in keys]


def create_app(config=None):
    config = config or load_config()
    app = Flask(__name__)
    CORS(app, origins=config['allowed_origins'])

    machine = Machine(config)
    app.extensions['ossim'] = machine

    @app.errorhandler(SimulatorError)
    def simulator_error(e):
        return jsonify({'success': False, 'error': str(e)}), 400

    @app.errorhandler(ValueError)
    def value_error(e):
        return jsonify({'success': False, 'error': f"Invalid value: {e}"}), 400

    @app.errorhandler(Exception)
    def unexpected_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("Unhandled error")
        return jsonify({'success': False, 'error': str(e)}), 500

    # --- allocation ---

    @app.route('/api/allocation/allocate', methods=['POST'])
    def allocate_route():
        data = _json()
        pid, size = _required(data, 'pid', 'size')
        success = machine.allocator.allocate(pid, int(size), data.get('tag'))
        if success:
            machine.sentinel.register_process(pid)
        return jsonify({'success': success, 'state': machine.allocator.get_state()})

    @app.route('/api/allocation/deallocate', methods=['POST'])
    def deallocate_route():
        pid, = _required(_json(), 'pid')
        machine.allocator.deallocate(pid)
        machine.sentinel.terminate_process_crash(pid)
        return jsonify({'success': True, 'state': machine.allocator.get_state()})

    @app.route('/api/allocation/compact', methods=['POST'])
    def compact_route():
        machine.allocator.compact()
        return jsonify({'success': True, 'state': machine.allocator.get_state()})

    @app.route('/api/allocation/algorithm', methods=['POST'])
    def allocation_algorithm_route():
        algorithm, = _required(_json(), 'algorithm')
        machine.allocator.set_algorithm(algorithm)
        return jsonify({'success': True, 'state': machine.allocator.get_state()})

    @app.route('/api/allocation/compare', methods=['POST'])
    def allocation_compare_route():
        size, = _required(_json(), 'size')
        return jsonify({'success': True, 'comparison_results': machine.allocator.compare_algorithms(int(size))})

    @app.route('/api/allocation/reset', methods=['POST'])
    def allocation_reset_route():
        machine.allocator.reset()
        machine.sentinel.reset()
        return jsonify({'success': True, 'state': machine.allocator.get_state()})

    @app.route('/api/allocation/state', methods=['GET'])
    def allocation_state_route():
        return jsonify(machine.allocator.get_state())

    # --- paging ---

    @app.route('/api/paging/config', methods=['POST'])
    def paging_config_route():
        machine.paging.set_memory_config(**_json())
        return jsonify({'success': True, 'memory_state': machine.paging.get_memory_state()})

    @app.route('/api/paging/algorithm', methods=['POST'])
    def paging_algorithm_route():
        algorithm, = _required(_json(), 'algorithm')
        machine.paging.set_replacement_algo(algorithm)
        return jsonify({'success': True, 'memory_state': machine.paging.get_memory_state()})

    @app.route('/api/paging/tlb_policy', methods=['POST'])
    def tlb_policy_route():
        policy, = _required(_json(), 'policy')
        machine.paging.set_tlb_policy(policy)
        return jsonify({'success': True, 'memory_state': machine.paging.get_memory_state()})

    @app.route('/api/paging/access', methods=['POST'])
    def access_address_route():
        data = _json()
        address, = _required(data, 'virtual_address')
        result, error = machine.paging.access_memory(
            int(address), data.get('pid', 1), data.get('operation', 'R'))
        if error:
            return jsonify({'result': None, 'error': error,
                            'memory_state': machine.paging.get_memory_state()}), 400
        return jsonify({'result': result, 'memory_state': machine.paging.get_memory_state()})

    @app.route('/api/paging/random_access', methods=['POST'])
    def random_access_route():
        count = int(_json().get('count', 10))
        results = machine.paging.random_access(count)
        return jsonify({'success': True, 'memory_state': machine.paging.get_memory_state(),
                        'access_results': results})

    @app.route('/api/paging/reset', methods=['POST'])
    def paging_reset_route():
        machine.paging.reset()
        return jsonify({'success': True, 'memory_state': machine.paging.get_memory_state()})

    @app.route('/api/paging/state', methods=['GET'])
    def paging_state_route():
        return jsonify(machine.paging.get_memory_state())

    @app.route('/api/paging/simulate', methods=['POST'])
    def simulate_route():
        data = _json()
        references, frames = _required(data, 'references', 'frames')
        run = replacement.simulate(references, int(frames), data.get('algorithm', 'FIFO'))
        return jsonify({'success': True, 'simulation': run})

    @app.route('/api/paging/compare', methods=['POST'])
    def compare_algorithms_route():
        data = _json()
        references, frames = _required(data, 'references', 'frames')
        return jsonify({'success': True,
                        'comparison_results': replacement.compare(references, int(frames))})

    # --- scheduler ---

    @app.route('/api/scheduler/process', methods=['POST'])
    def add_process_route():
        data = _json()
        pid, burst = _required(data, 'pid', 'burst_time')
        arrival = data.get('arrival_time')
        success = machine.scheduler.add_process(
            pid, int(burst),
            priority=int(data.get('priority', 0)),
            size=int(data.get('size', 0)),
            arrival_time=int(arrival) if arrival is not None else None,
            tag=data.get('tag')
        )
        return jsonify({'success': success, 'state': machine.scheduler.get_state()})

    @app.route('/api/scheduler/tick', methods=['POST'])
    def tick_route():
        for _ in range(int(_json().get('count', 1))):
            machine.scheduler.tick()
        return jsonify({'success': True, 'state': machine.scheduler.get_state()})

    @app.route('/api/scheduler/algorithm', methods=['POST'])
    def scheduler_algorithm_route():
        algorithm, = _required(_json(), 'algorithm')
        machine.scheduler.set_scheduler_algo(algorithm)
        return jsonify({'success': True, 'state': machine.scheduler.get_state()})

    @app.route('/api/scheduler/quantum', methods=['POST'])
    def quantum_route():
        quantum, = _required(_json(), 'time_quantum')
        machine.scheduler.set_time_quantum(int(quantum))
        return jsonify({'success': True, 'state': machine.scheduler.get_state()})

    @app.route('/api/scheduler/pause', methods=['POST'])
    def pause_route():
        paused = machine.scheduler.toggle_pause()
        return jsonify({'success': True, 'is_paused': paused})

    @app.route('/api/scheduler/reset', methods=['POST'])
    def scheduler_reset_route():
        machine.scheduler.reset_system()
        return jsonify({'success': True, 'state': machine.scheduler.get_state()})

    @app.route('/api/scheduler/snapshot', methods=['POST'])
    def snapshot_route():
        snapshot = machine.scheduler.take_snapshot()
        return jsonify({'success': snapshot is not None, 'snapshot': snapshot,
                        'snapshots': machine.scheduler.get_snapshots()})

    @app.route('/api/scheduler/state', methods=['GET'])
    def scheduler_state_route():
        return jsonify(machine.scheduler.get_state())

    # --- optimizer & sentinel ---

    @app.route('/api/optimizer/analyze', methods=['POST'])
    def analyze_route():
        recommendation = machine.optimizer.analyze(
            machine.allocator.summary(), machine.scheduler.summary())
        return jsonify({'success': True, 'recommendation': recommendation,
                        'state': machine.optimizer.get_state()})

    @app.route('/api/optimizer/apply', methods=['POST'])
    def apply_route():
        applied = machine.optimizer.apply(machine.allocator, machine.scheduler)
        return jsonify({'success': applied, 'state': machine.optimizer.get_state()})

    @app.route('/api/sentinel/register', methods=['POST'])
    def register_route():
        pid, = _required(_json(), 'pid')
        machine.sentinel.register_process(pid)
        return jsonify({'success': True, 'state': machine.sentinel.get_state()})

    @app.route('/api/sentinel/crash', methods=['POST'])
    def crash_route():
        pid, = _required(_json(), 'pid')
        machine.sentinel.terminate_process_crash(pid)
        return jsonify({'success': True, 'state': machine.sentinel.get_state()})

    @app.route('/api/sentinel/scan', methods=['POST'])
    def scan_route():
        leaks = machine.sentinel.scan_allocator(machine.allocator)
        return jsonify({'success': True, 'leaks': leaks, 'state': machine.sentinel.get_state()})

    @app.route('/api/sentinel/purge', methods=['POST'])
    def purge_route():
        purged = machine.sentinel.purge(machine.allocator)
        return jsonify({'success': True, 'purged': purged, 'state': machine.sentinel.get_state()})

    @app.route('/api/sentinel/state', methods=['GET'])
    def sentinel_state_route():
        return jsonify(machine.sentinel.get_state())

    @app.route('/api/health', methods=['GET'])
    def health_check_route():
        return jsonify({'status': 'healthy', 'message': 'OS resource simulator is running.'})

    return app


def main():
    logging.basicConfig(level=logging.INFO,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    config = load_config()
    app = create_app(config)
    app.run(host='0.0.0.0', port=config['port'], debug=False)


if __name__ == '__main__':
    main()
