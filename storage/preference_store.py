"""DynamoDB store for saved calendar preferences."""
import logging
import uuid
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from processor.errors import RegisterFailed
from processor.models import CalendarPreference, Preference

logger = logging.getLogger(__name__)


class PreferenceStore:
    """Store keeping each preference under a generated identifier."""

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize DynamoDB resource and table reference.

        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region, defaults to the environment's
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized PreferenceStore for table: {table_name}")

    def lookup(self, preference_id: str) -> Optional[Preference]:
        """
        Read a saved preference.

        Args:
            preference_id: Identifier returned by ``store``

        Returns:
            The ordered list of CalendarPreference, or None if unknown
        """
        if not self.is_valid_id(preference_id):
            logger.warning(f"Malformed preference id: {preference_id!r}")
            return None

        try:
            response = self.table.get_item(
                Key={'preference_id': preference_id}
            )
        except ClientError as e:
            logger.error(f"Error reading preference {preference_id}: {e}")
            raise

        item = response.get('Item')
        if item is None:
            logger.info(f"No preference found for id {preference_id}")
            return None

        return self._item_to_preference(item)

    def store(self, preference: Preference) -> str:
        """
        Save a preference under a new identifier.

        Preferences are never updated: saving again yields a new id.

        Args:
            preference: Ordered list of CalendarPreference

        Returns:
            The generated preference id

        Raises:
            RegisterFailed: If DynamoDB rejects the write
        """
        preference_id = str(uuid.uuid4())

        try:
            self.table.put_item(
                Item=self._preference_to_item(preference_id, preference)
            )
        except ClientError as e:
            logger.error(f"Error saving preference {preference_id}: {e}")
            raise RegisterFailed(str(e)) from e

        logger.info(
            f"Saved preference {preference_id} with {len(preference)} calendars"
        )
        return preference_id

    @staticmethod
    def is_valid_id(preference_id: str) -> bool:
        try:
            uuid.UUID(preference_id)
        except (TypeError, ValueError):
            return False
        return True

    def _preference_to_item(
        self,
        preference_id: str,
        preference: Preference
    ) -> dict:
        """
        Convert a preference to a DynamoDB item.

        Args:
            preference_id: Partition key of the item
            preference: Ordered list of CalendarPreference

        Returns:
            DynamoDB item dictionary
        """
        return {
            'preference_id': preference_id,
            'calendars': [
                {
                    'url': calendar.url,
                    'ignore': list(calendar.ignore),
                    'subjects': dict(calendar.subjects)
                }
                for calendar in preference
            ]
        }

    def _item_to_preference(self, item: dict) -> Preference:
        return [
            CalendarPreference(
                url=calendar['url'],
                ignore=list(calendar.get('ignore', [])),
                subjects=dict(calendar.get('subjects', {}))
            )
            for calendar in item.get('calendars', [])
        ]
