from typing import Optional


class CompositionError(Exception):
    """Basisklasse für alle Fehler beim Zusammensetzen eines Stacks"""


class ConfigurationError(CompositionError):
    """Fatale, nicht wiederholbare Fehlkonfiguration (unbekannter Layer, leeres Secret, ungültige Grenzen)"""

    def __init__(self, message: str, subject: Optional[str] = None):
        super().__init__(message)
        self.subject = subject


class UnsupportedCombinationError(ConfigurationError):
    """Feature-Kombination, die sich nicht konsistent verdrahten lässt"""


class DependencyUnavailableError(CompositionError):
    """Ein Wert wurde gelesen, dessen vorgelagerte Auflösung fehlgeschlagen ist"""

    def __init__(self, message: str, cause: BaseException):
        super().__init__(message)
        self.cause = cause


class UnresolvedValueError(CompositionError):
    """Ein Wert wurde gelesen, bevor er aufgelöst wurde"""


class RoleFrozenError(CompositionError):
    """Die Rolle wurde bereits von einer Function verwendet und ist nicht mehr änderbar"""
