"""
Error taxonomy for the dosing engine.

Safety faults withhold a dose and need operator attention, but never
stop the evaluation loop for other pools.
"""


class PoolDoseError(Exception):
    """Base class for all pooldose errors"""


class ConfigurationError(PoolDoseError):
    """Pool configuration is missing required fields or holds invalid values"""


class DosingSafetyError(PoolDoseError):
    """A hard safety limit forbids dosing for the current reading"""

    def __init__(self, message: str, current_ph: float, deviation: float):
        super().__init__(message)
        self.current_ph = current_ph
        self.deviation = deviation


class PhOutOfBoundsError(DosingSafetyError):
    """Reading is outside the absolute [min_ph, max_ph] window"""

    def __init__(self, current_ph: float, deviation: float, min_ph: float, max_ph: float):
        super().__init__(
            f"pH outside safe range ({min_ph} - {max_ph}). Current pH: {current_ph}",
            current_ph=current_ph,
            deviation=deviation,
        )
        self.min_ph = min_ph
        self.max_ph = max_ph


class PhChangeTooLargeError(DosingSafetyError):
    """Deviation from target exceeds the allowed change per dosing event"""

    def __init__(self, current_ph: float, deviation: float, max_ph_change: float):
        super().__init__(
            f"pH change too large: {abs(deviation):.2f} > {max_ph_change}. "
            f"Adjust the target pH or raise the max pH change limit.",
            current_ph=current_ph,
            deviation=deviation,
        )
        self.max_ph_change = max_ph_change


class DispatchError(PoolDoseError):
    """The actuator command channel rejected or timed out a command"""


class CommandStateError(PoolDoseError):
    """Command is already finalised or the requested transition is invalid"""
