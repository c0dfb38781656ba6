from typing_extensions import TypedDict


class ErrorResponse(TypedDict):
    detail: str


def error_status_codes(status_code: list[int]):
    return {status: {"model": ErrorResponse} for status in status_code}
