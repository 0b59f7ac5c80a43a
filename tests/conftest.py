"""Shared fixtures: a fake DuckDB executable for executor and session tests."""

import os
import sys
from pathlib import Path

import pytest

from sqlcells.config import EngineConfig

# Behaviour is selected by marker words in the SQL text:
#   missing_table  -> error on stderr, exit 1
#   SILENTFAIL     -> exit 2 with nothing on stderr
#   NOOUTPUT       -> write the artifact but print nothing
#   NOFILE         -> print a row count but write no artifact
#   BADFILE        -> write garbage to the artifact
#   SLEEP          -> sleep for a long time
FAKE_ENGINE = '''#!{python}
import json
import re
import sys
import time
from pathlib import Path

import pyarrow as pa

db, flag, option, script = sys.argv[1:5]
Path(__file__).with_name("last_call.json").write_text(json.dumps(sys.argv[1:]))
if db != ":memory:":
    Path(db).touch()

if "missing_table" in script:
    sys.stderr.write("Catalog Error: Table with name missing_table does not exist!\\n")
    sys.exit(1)
if "SILENTFAIL" in script:
    sys.exit(2)
if "SLEEP" in script:
    time.sleep(30)

match = re.search(r"TO '((?:[^']|'')*)' \\(FORMAT ARROWS\\)", script)
if match is None:
    print(json.dumps([{{"row_count": 0}}]))
    sys.exit(0)

path = match.group(1).replace("''", "'")
if "BADFILE" in script:
    Path(path).write_bytes(b"not an arrow file")
elif "NOFILE" not in script:
    table = pa.table({{"n": pa.array([1], pa.int32())}})
    with pa.OSFile(path, "wb") as sink:
        with pa.ipc.new_stream(sink, table.schema) as writer:
            writer.write_table(table)

if "NOOUTPUT" not in script:
    print(json.dumps([{{"row_count": 1}}]))
'''


@pytest.fixture
def fake_engine(tmp_path: Path) -> Path:
    """Path to an executable that mimics ``duckdb <db> -json -c <script>``."""
    engine_dir = tmp_path / "engine"
    engine_dir.mkdir()
    engine = engine_dir / "duckdb"
    engine.write_text(FAKE_ENGINE.format(python=sys.executable))
    os.chmod(engine, 0o755)
    return engine


@pytest.fixture
def engine_config(fake_engine: Path, tmp_path: Path) -> EngineConfig:
    """Config that runs the fake engine and writes artifacts under tmp_path."""
    artifacts = tmp_path / "artifacts"
    artifacts.mkdir()
    return EngineConfig(binary=str(fake_engine), temp_dir=str(artifacts))
