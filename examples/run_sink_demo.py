"""
Demo script for the record sink.

Streams synthetic click events into rotated Avro files under ./demo-out,
with a sync every 100 records and a 64 KB rotation threshold, then reads
everything back and checks the round trip.
"""

import random
import shutil
from pathlib import Path

from loguru import logger

from record_sink import (
    CountSyncPolicy,
    DefaultFileNameFormat,
    EncodingError,
    FileLifecycleEngine,
    FileSizeRotationPolicy,
    LocalFileSystemStorage,
    SchemaDescriptor,
    SizeUnit,
)
from record_sink.reader import output_files, read_output

CLICK_SCHEMA = {
    "type": "record",
    "name": "click",
    "namespace": "demo",
    "fields": [
        {"name": "user_id", "type": "long"},
        {"name": "url", "type": "string"},
        {"name": "referrer", "type": ["null", "string"], "default": None},
        {"name": "latency_ms", "type": "double"},
    ],
}


def make_click(i: int) -> dict:
    return {
        "user_id": random.randint(1, 10_000),
        "url": f"https://example.com/page/{i % 250}",
        "referrer": random.choice([None, "https://search.example.com"]),
        "latency_ms": round(random.uniform(5, 500), 2),
    }


def main():
    out = Path("demo-out")
    shutil.rmtree(out, ignore_errors=True)

    storage = LocalFileSystemStorage()
    name_format = DefaultFileNameFormat(str(out), instance_id="demo-0", prefix="clicks-")
    engine = FileLifecycleEngine(
        storage,
        SchemaDescriptor.parse(CLICK_SCHEMA),
        name_format,
        FileSizeRotationPolicy(64, SizeUnit.KB),
        CountSyncPolicy(100),
        codec="deflate",
    )

    sent = []
    with engine:
        logger.info("🚀 Writing 20,000 clicks")
        for i in range(20_000):
            click = make_click(i)
            if i % 5_000 == 4_999:
                click["latency_ms"] = "slow"  # rejected, stream continues
            try:
                engine.on_record(click)
                sent.append(click)
            except EncodingError as e:
                logger.warning(f"Skipping click {i}: {e}")

    files = output_files(storage, str(out), name_format)
    back = read_output(storage, str(out), name_format)
    logger.info(f"Wrote {len(sent)} clicks into {len(files)} files")
    assert back == sent, "round trip mismatch"
    logger.success("✅ Round trip verified")


if __name__ == "__main__":
    main()
