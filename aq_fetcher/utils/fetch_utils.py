"""
Utility module to fetch secrets, remote responses and input files.
"""

# Imports
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from urllib.parse import urlparse

import boto3
import requests
from botocore.exceptions import ClientError

from ..config import FetcherConfig
from .s3_utils import get_object, get_s3_client
from .transform_utils import records_from_csv


def fetch_secret(name: str | None, config: FetcherConfig) -> dict:
    """
    Retrieves a secret from AWS Secrets Manager by its logical name.

    The secret id is '<secret_stack or stack>/<name>'.

    Returns:
        dict: The parsed secret, or an empty dict if no name is given or the
        secret cannot be read.
    """
    if not name:
        return {}

    secret_id = f"{config.secret_stack or config.stack}/{name}"
    logging.debug(f"Fetching {secret_id} secret...")

    client = boto3.client("secretsmanager", region_name=config.region)
    try:
        response = client.get_secret_value(SecretId=secret_id)
    except ClientError as e:
        logging.error(f"Missing {name} secret: {e}")
        return {}

    secret = response.get("SecretString")
    return json.loads(secret) if secret else {}


def http_request(
    url: str,
    method: str = "GET",
    params: dict | None = None,
    headers: dict | None = None,
    timeout: int = 30,
) -> dict:
    """
    Sends an HTTP request and returns its status code and body.

    JSON responses are decoded, everything else is returned as text.
    Connection errors and timeouts propagate to the caller.
    """
    response = requests.request(
        method, url, params=params, headers=headers, timeout=timeout
    )
    if "json" in response.headers.get("Content-Type", ""):
        body = response.json()
    else:
        body = response.text
    return {"status_code": response.status_code, "body": body}


def _parse_text(text: str, path: str) -> list[dict]:
    if path.endswith(".json"):
        data = json.loads(text)
        return data if isinstance(data, list) else [data]
    return records_from_csv(text)


def fetch_file(descriptor: dict, config: FetcherConfig) -> list[dict] | None:
    """
    Resolves an input descriptor into a list of row dicts.

    The descriptor may carry inline rows or CSV text under 'data', or a
    'path' that is an s3:// url, an http(s):// url or a local file.

    Returns:
        list[dict]: The parsed rows, or None if the file could not be found.
    """
    data = descriptor.get("data")
    if data is not None:
        if isinstance(data, str):
            return records_from_csv(data)
        return list(data)

    path = descriptor.get("path")
    if not path:
        raise ValueError(f"File descriptor has neither data nor path: {descriptor}")

    parsed = urlparse(path)
    if parsed.scheme == "s3":
        s3_client = get_s3_client(config)
        text = get_object(s3_client, parsed.netloc, parsed.path.lstrip("/"))
        if text is None:
            logging.warning(f"File not found: {path}")
            return None
    elif parsed.scheme in ("http", "https"):
        response = http_request(path, timeout=config.request_timeout)
        if response["status_code"] != 200:
            logging.warning(f"Request for {path} returned {response['status_code']}")
            return None
        body = response["body"]
        if not isinstance(body, str):
            return body if isinstance(body, list) else [body]
        text = body
    else:
        local_path = Path(parsed.path if parsed.scheme == "file" else path)
        if not local_path.exists():
            logging.warning(f"File not found: {local_path}")
            return None
        text = local_path.read_text(encoding="utf-8")

    logging.info(f"Fetched {descriptor.get('type', 'file')} data from {path}")
    return _parse_text(text, path)


def fetch_files(
    descriptors: list[dict], config: FetcherConfig, max_workers: int | None = None
) -> list[list[dict] | None]:
    """
    Fetches several input files with a bounded number of concurrent requests.

    Results come back in the order of the descriptors. A fetch that fails is
    logged and returns None; it is not retried.
    """
    max_workers = max_workers or config.max_concurrency

    def _fetch(descriptor: dict):
        try:
            return fetch_file(descriptor, config)
        except (requests.exceptions.RequestException, ClientError, OSError, ValueError) as e:
            logging.error(f"Request failed for {descriptor.get('path', 'inline data')}: {e}")
            return None

    if not descriptors:
        return []

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(_fetch, descriptors))
