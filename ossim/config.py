import os

from .errors import InvalidConfiguration

DEFAULTS = {
    'total_memory': 10000,
    'logical_size': 65536,
    'physical_size': 32768,
    'page_size': 4096,
    'tlb_size': 4,
    'sched_frames': 16,
    'sched_page_size': 256,
    'time_quantum': 2,
    'seed': 0,
    'port': 5001,
}

ENV_KEYS = {
    'total_memory': 'OSSIM_TOTAL_MEMORY',
    'logical_size': 'OSSIM_LOGICAL_SIZE',
    'physical_size': 'OSSIM_PHYSICAL_SIZE',
    'page_size': 'OSSIM_PAGE_SIZE',
    'tlb_size': 'OSSIM_TLB_SIZE',
    'sched_frames': 'OSSIM_SCHED_FRAMES',
    'sched_page_size': 'OSSIM_SCHED_PAGE_SIZE',
    'time_quantum': 'OSSIM_TIME_QUANTUM',
    'seed': 'OSSIM_SEED',
    'port': 'PORT',
}

DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001"
]


def load_config(environ=None, **overrides):
    if environ is None:
        environ = os.environ

    config = dict(DEFAULTS)
    for key, env_name in ENV_KEYS.items():
        raw = environ.get(env_name)
        if raw is None or raw == '':
            continue
        try:
            config[key] = int(raw)
        except ValueError:
            raise InvalidConfiguration(f"{env_name} must be an integer, got {raw!r}")

    origins = list(DEFAULT_ORIGINS)
    prod_origin = environ.get('APP_URL')
    if prod_origin:
        origins.append(prod_origin)
    config['allowed_origins'] = origins

    config.update(overrides)
    return config
