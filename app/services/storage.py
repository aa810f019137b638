"""S3 document storage"""
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

from app.utils.errors import StorageError

logger = logging.getLogger(__name__)

def get_s3_client():
    """Get S3 client for the configured region"""
    return boto3.client('s3', region_name=current_app.config['AWS_REGION'])

def upload_document(file_obj, key, content_type=None):
    """Upload a file object and return a presigned URL for it"""
    bucket = current_app.config['DOCUMENTS_BUCKET']
    client = get_s3_client()
    extra_args = {'ContentType': content_type} if content_type else None

    try:
        client.upload_fileobj(file_obj, bucket, key, ExtraArgs=extra_args)
        url = client.generate_presigned_url(
            'get_object',
            Params={'Bucket': bucket, 'Key': key},
            ExpiresIn=current_app.config['DOCUMENT_URL_EXPIRES']
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Upload of {key} failed: {e}")
        raise StorageError(f'Failed to upload file: {e}') from e

    logger.info(f"Uploaded {key} to {bucket}")
    return url

def delete_document(key):
    bucket = current_app.config['DOCUMENTS_BUCKET']
    try:
        get_s3_client().delete_object(Bucket=bucket, Key=key)
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Delete of {key} failed: {e}")
        raise StorageError(f'Failed to delete file: {e}') from e
