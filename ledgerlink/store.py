"""
On-disk copy of a ChaincodeDescriptor.

Files are `{"details": <descriptor>}` named after the deployed chaincode
(`<deployedName>.json`), or chaincode.json before anything is deployed.
"""
import json
import logging
import os
import shutil

from ledgerlink.config import DEFAULT_FILENAME
from ledgerlink.errors import InputValidationError, LedgerError
from ledgerlink.models import ChaincodeDescriptor

log = logging.getLogger("ledgerlink.store")


def descriptor_filename(descriptor: ChaincodeDescriptor) -> str:
    if descriptor.deployed_name:
        return f"{descriptor.deployed_name}.json"
    return DEFAULT_FILENAME


def save_descriptor(directory: str, descriptor: ChaincodeDescriptor) -> str:
    """Write the descriptor under `directory` and return the file path."""
    if not directory:
        log.error("Input error in save(): no directory")
        raise InputValidationError("save() input error", 400, ['the option "dir" is required'])
    dest = os.path.join(directory, descriptor_filename(descriptor))
    try:
        os.makedirs(directory, exist_ok=True)
        with open(dest, "w") as f:
            json.dump({"details": descriptor.to_dict()}, f)
    except OSError as exc:
        log.error("save() failed writing %s: %s", dest, exc)
        raise LedgerError("save() fs write error", 500, str(exc), kind="SaveFailed") from exc
    log.info("Saved chaincode details to %s", dest)
    return dest


def load_descriptor(path: str) -> ChaincodeDescriptor:
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise InputValidationError("load_saved() input error", 400,
                                   [f"no saved chaincode at {path}"]) from exc
    except (OSError, ValueError) as exc:
        log.error("Could not read saved chaincode %s: %s", path, exc)
        raise LedgerError("load_saved() read error", 500, str(exc), kind="LoadFailed") from exc
    if not isinstance(data, dict) or not isinstance(data.get("details"), dict):
        raise InputValidationError("load_saved() input error", 400,
                                   [f"{path} has no details object"])
    return ChaincodeDescriptor.from_dict(data["details"])


def clear_directory(directory: str):
    """Remove `directory` and everything in it; a missing directory is fine."""
    log.info("Removing state dir %s", directory)
    if os.path.isdir(directory):
        shutil.rmtree(directory)
