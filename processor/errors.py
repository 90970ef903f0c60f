"""Errors raised while loading feeds and serving calendars."""
from typing import List


class CalendarError(Exception):
    """Base class for every calendar serving error."""

    message = 'Calendar error'

    def __str__(self) -> str:
        return self.message


class NotHyperplanningURL(CalendarError):
    message = "The given url isn't a hyperplanning one..."


class SourceUnreachable(CalendarError):
    """A feed could not be downloaded."""

    def __init__(self, url: str, reason: str):
        super().__init__(url, reason)
        self.url = url
        self.reason = reason

    @property
    def message(self) -> str:
        return f"Cannot download calendar: {self.reason}"


class EmptySourceCalendar(CalendarError):
    """A feed was downloaded but holds no iCalendar calendar."""

    def __init__(self, url: str):
        super().__init__(url)
        self.url = url

    message = "The content of the given url must contain at least one iCal Calendar..."


class MissingParameters(CalendarError):

    def __init__(self, parameters: List[str]):
        super().__init__(parameters)
        self.parameters = parameters

    @property
    def message(self) -> str:
        return (
            "One of the following parameters are missing : "
            f"{', '.join(self.parameters)}"
        )


class InvalidFilterInput(CalendarError):
    """The ignore list or the subjects map of a request is malformed."""

    def __init__(self, parameter: str, expected: str):
        super().__init__(parameter, expected)
        self.parameter = parameter
        self.expected = expected

    @property
    def message(self) -> str:
        return (
            "An error occurred when decoding JSON...\n"
            f"The '{self.parameter}' parameter must be {self.expected}."
        )


class BadPreferenceID(CalendarError):
    message = "Your preference id is not valid..."


class InvalidRegisterBody(CalendarError):
    message = "The register body is not valid..."


class RegisterFailed(CalendarError):

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    @property
    def message(self) -> str:
        return f"The register failed : {self.reason}"
