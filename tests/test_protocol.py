import pytest

from fenrisd.protocol import (
    FileInfo,
    ProtocolError,
    Request,
    RequestType,
    Response,
    ResponseType,
    deserialize_request,
    deserialize_response,
    serialize_request,
    serialize_response,
)


def test_request_round_trip():
    request = Request(
        command=RequestType.READ_FILE,
        filename="/path/to/file.txt",
        ip_addr=0x7F000001,
        data=b"This is test file content",
    )
    serialized = serialize_request(request)
    assert serialized
    assert deserialize_request(serialized) == request


def test_request_with_empty_fields():
    request = Request(command=RequestType.TERMINATE)
    serialized = serialize_request(request)
    assert serialized
    decoded = deserialize_request(serialized)
    assert decoded.command == RequestType.TERMINATE
    assert decoded.filename == ""
    assert decoded.ip_addr == 0
    assert decoded.data == b""


def test_default_request_encodes_to_nothing():
    assert serialize_request(Request()) == b""
    assert deserialize_request(b"") == Request()


def test_request_wire_bytes():
    request = Request(command=RequestType.READ_FILE, filename="a")
    assert serialize_request(request) == bytes([0x08, 0x02, 0x12, 0x01, 0x61])


def test_request_large_data():
    payload = bytes(i % 256 for i in range(1024 * 1024))
    request = Request(command=RequestType.WRITE_FILE, filename="largefile.bin", data=payload)
    decoded = deserialize_request(serialize_request(request))
    assert decoded.command == RequestType.WRITE_FILE
    assert decoded.filename == "largefile.bin"
    assert decoded.data == payload


def test_request_text_data_is_encoded():
    request = Request(command=RequestType.PING, data="TestPing")
    assert request.data == b"TestPing"


@pytest.mark.parametrize("raw", [bytes([0x00, 0x01, 0x02, 0x03]), b"\x12\x05ab", b"\x08"])
def test_invalid_request_data(raw):
    with pytest.raises(ProtocolError):
        deserialize_request(raw)


def test_unknown_request_type_rejected():
    with pytest.raises(ProtocolError):
        deserialize_request(b"\x08\x7f")


def test_unknown_fields_are_skipped():
    request = Request(command=RequestType.LIST_DIR, filename=".")
    encoded = serialize_request(request) + b"\x78\x05"
    assert deserialize_request(encoded) == request


def test_response_round_trip():
    response = Response(type=ResponseType.SUCCESS, success=True, data=b"Success response data")
    decoded = deserialize_response(serialize_response(response))
    assert decoded == response


def test_error_response():
    response = Response(type=ResponseType.ERROR, success=False, error_message="File not found")
    decoded = deserialize_response(serialize_response(response))
    assert decoded.type == ResponseType.ERROR
    assert decoded.success is False
    assert decoded.error_message == "File not found"


def test_file_info_response():
    response = Response(
        type=ResponseType.FILE_INFO,
        success=True,
        file_info=FileInfo(name="example.txt", size=1024, is_directory=False, modified_time=1621345678),
    )
    decoded = deserialize_response(serialize_response(response))
    assert decoded.type == ResponseType.FILE_INFO
    assert decoded.success is True
    assert decoded.file_info == FileInfo(name="example.txt", size=1024, modified_time=1621345678)


def test_directory_listing_response():
    entries = [
        FileInfo(name="file1.txt", size=100, modified_time=1621345600),
        FileInfo(name="file2.txt", size=200, modified_time=1621345700),
        FileInfo(name="subdir", size=0, is_directory=True, modified_time=1621345800),
    ]
    response = Response(type=ResponseType.DIR_LISTING, success=True, directory_listing=entries)
    decoded = deserialize_response(serialize_response(response))
    assert decoded.type == ResponseType.DIR_LISTING
    assert decoded.directory_listing == entries
    assert decoded.directory_listing[2].is_directory


def test_empty_directory_listing_is_kept():
    response = Response(type=ResponseType.DIR_LISTING, success=True, directory_listing=[])
    decoded = deserialize_response(serialize_response(response))
    assert decoded.directory_listing == []
    assert decoded.file_info is None


def test_negative_modified_time_round_trip():
    info = FileInfo(name="old", modified_time=-5, permissions=0o644)
    decoded = deserialize_response(serialize_response(Response(file_info=info)))
    assert decoded.file_info == info


def test_response_large_data():
    payload = bytes(i % 256 for i in range(1024 * 1024))
    response = Response(type=ResponseType.FILE_CONTENT, success=True, data=payload)
    decoded = deserialize_response(serialize_response(response))
    assert decoded.data == payload
    assert decoded.success is True


def test_default_response_decodes_from_empty():
    decoded = deserialize_response(b"")
    assert decoded.type == ResponseType.PONG
    assert decoded.success is False
    assert decoded.error_message == ""
    assert decoded.data == b""


def test_invalid_response_data():
    with pytest.raises(ProtocolError):
        deserialize_response(bytes([0x00, 0x01, 0x02, 0x03]))


def test_invalid_utf8_filename_rejected():
    with pytest.raises(ProtocolError):
        deserialize_request(b"\x12\x01\xff")