"""
TurboLoader - PolyTrack mass import toolkit

Decodes PolyTrack share codes, detects how a game install stores its tracks,
and merges batches of tracks into that store.

Usage:
    from turboloader import InMemoryStore, detect_store_schema, import_tracks, parse_track_text

    store = InMemoryStore()
    parsed = parse_track_text(open("tracks.txt").read())
    schema = detect_store_schema(store)
    result = import_tracks(parsed.records, "rename", schema, store)
"""

__version__ = "0.3.0"
__author__ = "TurboLoader Contributors"


def __getattr__(name):
    """Lazy import so the CLI can start without loading the store backends."""
    if name in ("encode", "decode", "DecodeError"):
        from turboloader import codec
        return getattr(codec, name)
    elif name in ("classify", "decode_v3", "decode_v1n", "process_track_data", "TrackFormat"):
        from turboloader import sharecode
        return getattr(sharecode, name)
    elif name in ("detect_schema", "detect_store_schema", "StorageSchemaConfig"):
        from turboloader import schema
        return getattr(schema, name)
    elif name in ("ImportEngine", "import_tracks"):
        from turboloader import importer
        return getattr(importer, name)
    elif name == "to_baseline":
        from turboloader.legacy import to_baseline
        return to_baseline
    elif name in ("TrackRecord", "ImportResult", "CollisionPolicy", "ImportStatus"):
        from turboloader import models
        return getattr(models, name)
    elif name in ("InMemoryStore", "JsonFileStore", "SqlStore", "open_store"):
        from turboloader import store
        return getattr(store, name)
    elif name == "parse_track_text":
        from turboloader.tracklist import parse_track_text
        return parse_track_text
    raise AttributeError(f"module 'turboloader' has no attribute '{name}'")
