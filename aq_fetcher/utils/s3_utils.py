"""
Utility module to read and write stations, measures and source metadata in S3.
"""

# Imports
import gzip
import json
import logging
import time
import uuid

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ..config import FetcherConfig
from ..measure import Measures


logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - [%(levelname)s] - %(message)s"
)

# Storage calls lean on the client's own retry policy
S3_RETRY_CONFIG = Config(retries={"max_attempts": 10, "mode": "standard"})


def get_s3_client(config: FetcherConfig):
    """Creates the S3 client used for one run."""
    return boto3.client("s3", region_name=config.region, config=S3_RETRY_CONFIG)


def create_measures_key() -> str:
    """
    Creates a unique file name for a batch of measures.

    Returns:
        str: e.g. '1718000000-3f9c2a1b'.
    """
    return f"{int(time.time())}-{uuid.uuid4().hex[:8]}"


def get_object(s3_client, bucket_name: str, s3_key: str) -> str | None:
    """
    Reads an object from S3 as text, unzipping it if it was stored gzipped.

    Returns:
        str: The object content, or None if the key does not exist.
    """
    try:
        response = s3_client.get_object(Bucket=bucket_name, Key=s3_key)
    except ClientError as e:
        if e.response["Error"]["Code"] in ("NoSuchKey", "404"):
            logging.debug(f"File not found at s3://{bucket_name}/{s3_key}")
            return None
        logging.error(f"An S3 client error occurred: {e}")
        raise

    body = response["Body"].read()
    if response.get("ContentEncoding") == "gzip":
        body = gzip.decompress(body)
    return body.decode("utf-8")


def put_object(
    s3_client,
    bucket_name: str,
    s3_key: str,
    text: str,
    content_type: str = "application/json",
    compress: bool = True,
):
    """
    Uploads text to S3, gzipped by default.
    """
    params = {
        "Bucket": bucket_name,
        "Key": s3_key,
        "ContentType": content_type,
    }
    if compress:
        params["Body"] = gzip.compress(text.encode("utf-8"))
        params["ContentEncoding"] = "gzip"
    else:
        params["Body"] = text.encode("utf-8")

    try:
        logging.info(f"Uploading to s3://{bucket_name}/{s3_key}")
        return s3_client.put_object(**params)
    except ClientError as e:
        logging.error(f"S3 upload failed for key {s3_key}: {e}")
        raise


def put_station(provider: str, station, config: FetcherConfig, s3_client=None) -> bool:
    """
    Stores one station if it changed since the last upload.

    Args:
        provider (str): Provider name, used in the key.
        station (SensorNode): The station tree to store.
        config (FetcherConfig): Bucket, stack and dry-run/force flags.

    Returns:
        bool: True if the station was written.
    """
    s3_client = s3_client or get_s3_client(config)
    provider_station = f"{provider}/{station.sensor_node_id}"
    s3_key = f"{config.stack}/stations/{provider_station}.json.gz"
    new_data = json.dumps(station.json())

    # Diff first to avoid paying for unchanged PUTs
    current_data = get_object(s3_client, config.bucket, s3_key)
    if current_data == new_data and not config.force:
        logging.debug(f"station has not changed - station: {provider_station}")
        return False

    if config.dry_run:
        logging.info(f"Would have saved station to s3://{config.bucket}/{s3_key}")
        return False

    put_object(s3_client, config.bucket, s3_key, new_data)
    logging.debug(f"finished station: {provider_station}")
    return True


def put_stations(provider: str, stations, config: FetcherConfig, s3_client=None) -> int:
    """Stores each station on its own. Returns the number written."""
    s3_client = s3_client or get_s3_client(config)
    written = 0
    for station in stations:
        if put_station(provider, station, config, s3_client=s3_client):
            written += 1
    logging.info(f"Stored {written}/{len(stations)} changed stations for {provider}")
    return written


def put_measures(
    provider: str,
    measures: Measures,
    config: FetcherConfig,
    key: str | None = None,
    s3_client=None,
) -> bool:
    """
    Stores a batch of measures as one gzipped CSV object.

    Returns:
        bool: True if an object was written.
    """
    if not len(measures):
        logging.warning("No measures found, not uploading to S3.")
        return False

    filename = key or create_measures_key()
    s3_key = f"{config.stack}/measures/{provider}/{filename}.csv.gz"

    if config.dry_run:
        logging.info(
            f"Would have saved {len(measures)} measurements to s3://{config.bucket}/{s3_key}"
        )
        return False

    s3_client = s3_client or get_s3_client(config)
    put_object(s3_client, config.bucket, s3_key, measures.csv(), content_type="text/csv")
    return True


def put_measures_json(
    provider: str,
    data: dict,
    config: FetcherConfig,
    key: str | None = None,
    s3_client=None,
) -> bool:
    """
    Stores a combined locations + measures document as gzipped JSON.
    """
    if not data.get("measures") and not data.get("locations"):
        logging.warning("No data found, not uploading to S3.")
        return False

    filename = key or create_measures_key()
    s3_key = f"{config.stack}/measures/{provider}/{filename}.json.gz"

    if config.dry_run:
        logging.info(
            f"Would have saved {len(data.get('measures', []))} measurements and "
            f"{len(data.get('locations', []))} locations to s3://{config.bucket}/{s3_key}"
        )
        return False

    s3_client = s3_client or get_s3_client(config)
    put_object(s3_client, config.bucket, s3_key, json.dumps(data))
    return True


def put_version(provider: str, version, config: FetcherConfig, s3_client=None) -> bool:
    """Stores a sensor version record."""
    s3_key = f"{config.stack}/versions/{provider}/{version.sensor_id}.json.gz"
    if config.dry_run:
        logging.info(f"Would have saved version to s3://{config.bucket}/{s3_key}")
        return False
    s3_client = s3_client or get_s3_client(config)
    put_object(s3_client, config.bucket, s3_key, json.dumps(version.json()))
    return True


def load_meta(source_name: str, config: FetcherConfig, s3_client=None) -> dict | None:
    """
    Reads the stored metadata document of a source.

    Returns:
        dict: The metadata, or None if nothing was stored yet.
    """
    s3_client = s3_client or get_s3_client(config)
    body = get_object(s3_client, config.bucket, f"{config.stack}/meta/{source_name}")
    if body is None:
        logging.info("No meta file found.")
        return None
    return json.loads(body)


def save_meta(source_name: str, body: dict, config: FetcherConfig, s3_client=None):
    """Writes the metadata document of a source (uncompressed JSON)."""
    if config.dry_run:
        logging.info(f"Would have saved meta for {source_name}")
        return None
    s3_client = s3_client or get_s3_client(config)
    return put_object(
        s3_client,
        config.bucket,
        f"{config.stack}/meta/{source_name}",
        json.dumps(body, default=str),
        compress=False,
    )
