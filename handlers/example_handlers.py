"""Example route handlers."""

from request import HTTPRequest
from response_writer import ResponseWriter, json_response


def health_check(writer: ResponseWriter, request: HTTPRequest) -> None:
    _ = request
    writer.write_header(204)


def ping(writer: ResponseWriter, request: HTTPRequest) -> None:
    json_response(
        writer,
        200,
        {
            "id": request.path_param("id"),
            "otherid": request.path_param("otherid"),
            "name": request.query_value("name"),
        },
    )
