from typing import BinaryIO
from minio import Minio
from marketplace.src.constants import (
    MINIO_HOST,
    MINIO_PASSWORD,
    MINIO_PORT,
    MINIO_USERNAME,
)

# MinIO client instance
client: Minio = Minio(
    endpoint=f"{MINIO_HOST}:{MINIO_PORT}",
    access_key=MINIO_USERNAME,
    secret_key=MINIO_PASSWORD,
    secure=False,
)


def createBucket(bucketName: str) -> None:
    """
    Create a bucket in MinIO unless it already exists.

    Raises:
        S3Error: If the bucket cannot be created.
    """
    if not client.bucket_exists(bucketName):
        client.make_bucket(bucketName)


def deleteBucket(bucketName: str) -> None:
    """
    Delete a bucket and all its contents from MinIO.

    Note:
        This will remove all objects inside the bucket before deleting it.
    """
    if not client.bucket_exists(bucketName):
        return
    for object in client.list_objects(bucketName, recursive=True):
        client.remove_object(bucketName, object.object_name)
    client.remove_bucket(bucketName)


def uploadFile(
    bucketName: str,
    objectID: str,
    size: int,
    fileObject: BinaryIO,
    contentType: str = "application/octet-stream",
) -> str:
    """
    Upload a file to MinIO.

    Args:
        bucketName (str): The name of the bucket where the file will be stored.
        objectID (str): The unique identifier (key) for the object in MinIO.
        size (int): The size of the file in bytes.
        fileObject (BinaryIO): A file-like object containing the data to upload.
        contentType (str): MIME type stored with the object.

    Returns:
        str: Reference of the stored object in the form `<bucket>/<object>`.

    Raises:
        S3Error: If the file cannot be uploaded.
    """
    client.put_object(bucketName, objectID, fileObject, size, content_type=contentType)
    return f"{bucketName}/{objectID}"
