from .allocator import MemoryAllocator
from .paging import PagingSimulator
from .scheduler import CPUScheduler
from .errors import SimulatorError, InvalidConfiguration, InvalidAddress

__all__ = [
    'MemoryAllocator', 'PagingSimulator', 'CPUScheduler',
    'SimulatorError', 'InvalidConfiguration', 'InvalidAddress',
]
