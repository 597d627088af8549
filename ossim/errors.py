class SimulatorError(Exception):
    pass


class InvalidConfiguration(SimulatorError, ValueError):
    pass


class InvalidAddress(SimulatorError, ValueError):
    pass
