class CRSKitException(Exception):
    """
    Base class for all errors raised by crskit.
    """


class ParseError(CRSKitException, ValueError):
    """
    Raised when a textual definition cannot be turned into an object.
    """


class WKTParseError(ParseError):
    pass


class ProjStringParseError(ParseError):
    pass


class UnrepresentableError(CRSKitException, ValueError):
    """
    Raised when a valid object cannot be expressed in the requested dialect or style.
    """


class FormattingOptionError(CRSKitException, ValueError):
    """
    Raised when a formatter receives an unknown option name or an invalid option value.
    """


class NotFoundError(CRSKitException, KeyError):
    """
    Raised when a single-object registry lookup has no match.
    """

    def __str__(self):
        return str(self.args[0]) if self.args else ""


class RegistryError(CRSKitException):
    """
    Raised when a registry dataset cannot be opened or is malformed.

    The registry that raised it keeps serving its previous dataset.
    """
