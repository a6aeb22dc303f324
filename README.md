# logixcip

EtherNet/IP and CIP building blocks for Logix-family controllers, in pure
Python with no dependencies outside the standard library.

## Modules

- `logixcip.cip`: path segments `CIPClass`, `CIPInstance`, `CIPAttribute`
  and `CIPElement`. Each one has `encode()` and `encoded_len()` and picks the
  8, 16 or 32 bit segment form. `CIPClass`, `CIPInstance` and `CIPAttribute`
  also have a `read(stream)` class method that decodes a segment. A value
  outside a segment's range raises `ValueError`. `CipObject` lists the
  well-known object classes, such as `CipObject.IDENTITY` and
  `CipObject.SYMBOL`. `CIPStatus` and `status_text(code)` describe the
  general status codes.
- `logixcip.device_type`: `device_type_name(code)` returns the name of an
  identity-object device type, or `"Unknown"`.
- `logixcip.errors`: `CIPError(code, extended)` is a CIP error with a
  readable message. `MultiError` gathers several errors into one exception.
- `logixcip.items`: `CIPItem` holds one common packet format item. It is a
  byte buffer with a read position and typed readers: `byte()`, `uint16()`,
  `int16()`, `uint32()`, `int32()`, `uint64()`, `int64()`, `float32()` and
  `float64()`. It also has `deserialize(fmt)` for struct formats,
  `serialize(value)`, `rest()`, `reset()` and `to_bytes()`. The module also
  provides `new_item`, `serialize_items` and `read_items`, which build and
  parse item lists.
- `logixcip.ioi`: `parse_tag_name` splits a trailing array index or bit
  number off a tag name. `IOIBuilder.build(tagpath, datatype)` turns a tag
  name into its symbolic request path (`TagIOI`) and caches the result.
  `marshal_ioi_part` encodes one name segment. `tag_from_path(item)` decodes
  a request path back into a tag name.
- `logixcip.l5x`: `l5x_value(type, text)` converts one L5X value.
  `load_tags(root)` and `load_tags_file(path)` collect controller and
  program tag values from an exported project. Program tags sit under
  `"program:<name>"`. Structures become dicts and arrays become lists.
- `logixcip.connection`: the `CIPService` and `EIPCommand` codes, and
  `EIPHeader` for encapsulation headers. Also `connection_parameters`,
  `build_forward_open`, `build_register_session`, `parse_response` and
  `ForwardOpenReply`.
- `logixcip.client`: `Client` connects over TCP (port 44818 by default),
  registers a session and opens a large forward-open connection. If that
  fails it falls back to a standard one. It offers `get_attr_single`,
  `get_attr_list`, `get_controller_prop_list` (returning a
  `ControllerPropList`), `generic_cip_message`, `firmware` and `new_ioi`.
  A `Client` is a context manager that connects on entry and disconnects on
  exit. With `auto_connect` left on, requests connect first if needed.
  `keep_alive()` polls the controller info attributes while
  `keep_alive_auto_start` is set. `keep_alive_cancel(force)` stops it.

## Examples

Read the identity object's vendor ID:

```python
from logixcip.cip import CipObject
from logixcip.client import Client

with Client("192.0.2.10") as client:
    item = client.get_attr_single(CipObject.IDENTITY, 1, 1)
    print(hex(item.uint16()))
```

Send a generic service to an encoded path:

```python
from logixcip.cip import CipObject, CIPInstance
from logixcip.client import Client
from logixcip.connection import CIPService

path = CipObject.TIME.encode() + CIPInstance(1).encode()
with Client("192.0.2.10") as client:
    item = client.generic_cip_message(
        CIPService.GET_ATTRIBUTE_LIST, path, b"\x01\x00\x0b\x00"
    )
    print(item.rest().hex(" "))
```

Encode a tag path and decode it back:

```python
from logixcip.ioi import IOIBuilder, tag_from_path
from logixcip.items import new_item

ioi = IOIBuilder().build("profile[0,1,257]")
print(ioi.encode().hex(" "))
print(tag_from_path(new_item(0, ioi.encode())))  # profile[0,1,257]
```

Load tag values from an L5X export:

```python
from logixcip.l5x import load_tags_file

tags = load_tags_file("project.L5X")
print(tags["program:MainProgram"])
```

Look up a device type:

```python
from logixcip.device_type import device_type_name

device_type_name(0x0E)  # "Programmable Logic Controller"
```

## Errors

Failures raise exceptions:

- `CIPError` for an error status in a forward open or forward close reply.
- `logixcip.client.ResponseStatusError` for a non-zero status in a
  `get_attr_list` or `generic_cip_message` reply. The reply item is attached
  to the exception.
- `ConnectionError` when the controller cannot be reached, or when the
  client is not connected and `auto_connect` is off.
- `ItemOutOfDataError` (an `EOFError`) for reads past the end of an item.
- `ValueError` for malformed segments, tag names or L5X data types.

## What it does not do

The package does not read or write tag values. It has no tag or program
listing and no user-defined type decoding, so `Client.known_tags` is only
filled in by the caller. It has no server side for incoming messages and no
command-line program. Its network use is limited to attribute reads and
generic CIP messages over a connected session.

## Running the tests

```
pip install .[test]
pytest
```