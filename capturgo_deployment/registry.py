import json
import shutil
from pathlib import Path
from typing import List, Optional

from capturgo_deployment.constants import ARTIFACTS_DIRNAME, STANDARD_RECORD_JSON_FORMAT
from capturgo_deployment.exceptions import PersistenceError
from capturgo_deployment.ledger import ChainId, PersistedRecord


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def default_artifacts_dir() -> Path:
    return Path.cwd() / ARTIFACTS_DIRNAME


def record_filepath(chain_id: ChainId, artifacts_dir: Optional[Path] = None) -> Path:
    """Returns the location of the deployment record for a chain."""
    artifacts_dir = Path(artifacts_dir) if artifacts_dir else default_artifacts_dir()
    return artifacts_dir / f"{chain_id}.json"


def _archive_filepath(filepath: Path) -> Path:
    """First free `<chainId>.<n>.json` next to an existing record."""
    index = 1
    while True:
        candidate = filepath.with_suffix(f".{index}.json")
        if not candidate.exists():
            return candidate
        index += 1


def check_writable(
    chain_id: ChainId, artifacts_dir: Optional[Path] = None, overwrite: bool = False
) -> Path:
    """
    Checks that a deployment has not already been published for the chain_id.
    Meant to run before any transaction is sent.
    """
    filepath = record_filepath(chain_id, artifacts_dir)
    if filepath.exists() and not overwrite:
        raise PersistenceError(
            f"Deployment is already published for chain_id {chain_id} at {filepath}."
        )
    return filepath


def write_record(
    record: PersistedRecord, artifacts_dir: Optional[Path] = None, overwrite: bool = False
) -> Path:
    """
    Writes a deployment record to `<artifacts_dir>/<chainId>.json`.

    An existing record is never clobbered: without `overwrite` the write is
    refused, with it the previous record is first archived as `<chainId>.<n>.json`.
    The record itself is swapped in with a single replace, so `<chainId>.json`
    is either the previous record or the new one, never missing.
    """
    filepath = check_writable(record.chain_id, artifacts_dir, overwrite)
    temp_filepath = filepath.with_suffix(".temp.json")
    try:
        # Create the parent directory if it does not exist
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_filepath, "w") as file:
            json.dump(record.to_json(), file, **STANDARD_RECORD_JSON_FORMAT)
            file.write("\n")

        if filepath.exists():
            archive = _archive_filepath(filepath)
            shutil.copy2(filepath, archive)
            print(f"(i) Previous record for chain_id {record.chain_id} archived to {archive}")

        temp_filepath.replace(filepath)
    except OSError as e:
        raise PersistenceError(f"Unable to write deployment record to {filepath}: {e}") from e
    finally:
        if temp_filepath.exists():
            temp_filepath.unlink()

    return filepath


def read_record(filepath: Path) -> PersistedRecord:
    try:
        data = _load_json(filepath)
        return PersistedRecord.from_json(data)
    except (OSError, ValueError, KeyError) as e:
        raise PersistenceError(f"Unable to read deployment record at {filepath}: {e}") from e


def list_records(artifacts_dir: Optional[Path] = None) -> List[PersistedRecord]:
    """Current (non-archived) records in the artifacts directory, ordered by chain id."""
    artifacts_dir = Path(artifacts_dir) if artifacts_dir else default_artifacts_dir()
    if not artifacts_dir.exists():
        return list()
    records = list()
    for filepath in artifacts_dir.glob("*.json"):
        if not filepath.stem.isdigit():
            continue  # archived or temporary
        records.append(read_record(filepath))
    records.sort(key=lambda r: r.chain_id)
    return records
