"""Protobuf messages for the Prometheus remote storage protocol.

Only the subset of ``prometheus/prompb`` (types.proto and remote.proto) the
adapter speaks is described here. Field numbers match upstream, so payloads
from Prometheus decode unchanged; fields we do not model (exemplars,
histograms, metadata, read hints) are kept as unknown fields by the runtime.

The descriptor is assembled with ``descriptor_pb2`` and registered in a
private pool, so these classes never clash with another copy of the
``prometheus`` package in the default pool.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_PACKAGE = "prometheus"

_F = descriptor_pb2.FieldDescriptorProto


def _field(
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    field_type: int,
    repeated: bool = False,
    type_name: str | None = None,
) -> None:
    field = message.field.add()
    field.name = name
    field.number = number
    field.type = field_type
    field.label = _F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL
    if type_name:
        field.type_name = f".{_PACKAGE}.{type_name}"


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto()
    proto.name = "promduck/prompb.proto"
    proto.package = _PACKAGE
    proto.syntax = "proto3"

    sample = proto.message_type.add(name="Sample")
    _field(sample, "value", 1, _F.TYPE_DOUBLE)
    _field(sample, "timestamp", 2, _F.TYPE_INT64)

    label = proto.message_type.add(name="Label")
    _field(label, "name", 1, _F.TYPE_STRING)
    _field(label, "value", 2, _F.TYPE_STRING)

    timeseries = proto.message_type.add(name="TimeSeries")
    _field(timeseries, "labels", 1, _F.TYPE_MESSAGE, repeated=True, type_name="Label")
    _field(timeseries, "samples", 2, _F.TYPE_MESSAGE, repeated=True, type_name="Sample")

    matcher = proto.message_type.add(name="LabelMatcher")
    match_type = matcher.enum_type.add(name="Type")
    for number, value_name in enumerate(("EQ", "NEQ", "RE", "NRE")):
        match_type.value.add(name=value_name, number=number)
    _field(matcher, "type", 1, _F.TYPE_ENUM, type_name="LabelMatcher.Type")
    _field(matcher, "name", 2, _F.TYPE_STRING)
    _field(matcher, "value", 3, _F.TYPE_STRING)

    write_request = proto.message_type.add(name="WriteRequest")
    _field(
        write_request, "timeseries", 1, _F.TYPE_MESSAGE, repeated=True, type_name="TimeSeries"
    )

    query = proto.message_type.add(name="Query")
    _field(query, "start_timestamp_ms", 1, _F.TYPE_INT64)
    _field(query, "end_timestamp_ms", 2, _F.TYPE_INT64)
    _field(query, "matchers", 3, _F.TYPE_MESSAGE, repeated=True, type_name="LabelMatcher")

    read_request = proto.message_type.add(name="ReadRequest")
    _field(read_request, "queries", 1, _F.TYPE_MESSAGE, repeated=True, type_name="Query")

    query_result = proto.message_type.add(name="QueryResult")
    _field(
        query_result, "timeseries", 1, _F.TYPE_MESSAGE, repeated=True, type_name="TimeSeries"
    )

    read_response = proto.message_type.add(name="ReadResponse")
    _field(
        read_response, "results", 1, _F.TYPE_MESSAGE, repeated=True, type_name="QueryResult"
    )

    return proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_build_file().SerializeToString())


def _message(name: str):
    return message_factory.GetMessageClass(_POOL.FindMessageTypeByName(f"{_PACKAGE}.{name}"))


Sample = _message("Sample")
Label = _message("Label")
TimeSeries = _message("TimeSeries")
LabelMatcher = _message("LabelMatcher")
WriteRequest = _message("WriteRequest")
Query = _message("Query")
ReadRequest = _message("ReadRequest")
QueryResult = _message("QueryResult")
ReadResponse = _message("ReadResponse")

__all__ = [
    "Label",
    "LabelMatcher",
    "Query",
    "QueryResult",
    "ReadRequest",
    "ReadResponse",
    "Sample",
    "TimeSeries",
    "WriteRequest",
]
