"""
Shared fixtures for building GTFS distribution archives.
"""

import io
import struct
import zipfile

import pytest


STOPS_HEADER = "stop_id,stop_name,stop_lat,stop_lon\n"
STOP_TIMES_HEADER = (
    "trip_id,arrival_time,departure_time,stop_id,stop_sequence,"
    "stop_headsign,pickup_type,drop_off_type,shape_dist_traveled\n"
)


def _zip_bytes(entries):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
        for name, content in entries.items():
            if isinstance(content, str):
                content = content.encode('utf-8')
            archive.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def zip_bytes():
    """Build an in-memory zip from {entry name: str | bytes}."""
    return _zip_bytes


@pytest.fixture
def make_zip(tmp_path):
    """Write a zip built from {entry name: str | bytes} under tmp_path."""
    def _make(name, entries):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(_zip_bytes(entries))
        return str(path)
    return _make


@pytest.fixture
def ptv_distribution(make_zip, zip_bytes):
    """
    Two-mode distribution shaped like the PTV download: one directory per
    mode, each holding a google_transit.zip. Both modes publish stop S1.
    """
    metro = zip_bytes({
        'stops.txt': STOPS_HEADER + 'S1,Main St,-37.8,144.9\nS2,Flinders St,-37.81,144.96\n',
        'agency.txt': 'agency_id,agency_name,agency_url,agency_timezone,agency_lang\n'
                      '1,Metro,http://metro.example,Australia/Melbourne,EN\n',
    })
    tram = zip_bytes({
        'stops.txt': STOPS_HEADER + 'S1,Main Street,-37.81,144.95\nS3,Bourke St,-37.82,144.97\n',
        'agency.txt': 'agency_id,agency_name,agency_url,agency_timezone,agency_lang\n'
                      '1,Metro,http://metro.example,Australia/Melbourne,EN\n',
    })
    return make_zip('gtfs.zip', {
        '1/google_transit.zip': metro,
        '2/google_transit.zip': tram,
        'readme.txt': 'not an entity file\n',
    })


def _damage(raw, how):
    """Corrupt the single entry of a valid zip in place."""
    with zipfile.ZipFile(io.BytesIO(bytes(raw))) as archive:
        info = archive.infolist()[0]
    central = raw.find(b'PK\x01\x02')

    if how == 'stream':
        name_len, extra_len = struct.unpack_from('<HH', raw, info.header_offset + 26)
        start = info.header_offset + 30 + name_len + extra_len
        raw[start:start + info.compress_size] = b'\xff' * info.compress_size
    elif how == 'method':
        struct.pack_into('<H', raw, central + 10, 99)
    elif how == 'encrypted':
        flags = struct.unpack_from('<H', raw, central + 8)[0]
        struct.pack_into('<H', raw, central + 8, flags | 0x1)
    else:
        raise ValueError(how)
    return raw


@pytest.fixture
def damaged_zip_bytes():
    """
    Build a zip whose one entry is readable from the directory but fails on
    read: 'stream' (broken deflate data), 'method' (unknown compression) or
    'encrypted' (password required).
    """
    def _build(entry, content, how):
        return bytes(_damage(bytearray(_zip_bytes({entry: content})), how))
    return _build
