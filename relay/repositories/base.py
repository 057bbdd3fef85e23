"""
Generic Repository Base Class
DRY foundation for async CRUD operations on MongoDB collections.
"""
from typing import Generic, TypeVar, Type, Optional, List, Dict, Any
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

from ..models.base import MongoBaseModel
from ..utils.observability import logger

# Generic type for domain models
T = TypeVar("T", bound=MongoBaseModel)


class BaseRepository(Generic[T]):
    """
    Generic async repository for MongoDB collections.
    Provides type-safe CRUD operations for domain models keyed by string ids.

    Usage:
        class MongoMessageStore(BaseRepository[Message]):
            def __init__(self, database: AsyncIOMotorDatabase):
                super().__init__(database, "messages", Message)
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        collection_name: str,
        model_class: Type[T]
    ):
        """
        Initialize repository with database connection and model type.

        Args:
            database: Motor database instance
            collection_name: MongoDB collection name
            model_class: Pydantic model class for type safety
        """
        self.database = database
        self.collection: AsyncIOMotorCollection = database[collection_name]
        self.model_class = model_class
        self.collection_name = collection_name

    async def create(self, document: T) -> T:
        """
        Insert a new document, using the model id as `_id`.

        Args:
            document: Domain model instance to persist

        Returns:
            The persisted document

        Raises:
            pymongo.errors.DuplicateKeyError: If the id already exists
        """
        doc_dict = document.model_dump(by_alias=True)

        result = await self.collection.insert_one(doc_dict)

        logger.bind(document_id=str(result.inserted_id)).debug(
            f"Created document in {self.collection_name}"
        )

        return document

    async def find_by_id(self, document_id: str) -> Optional[T]:
        """
        Retrieve a document by its id.

        Args:
            document_id: Document key

        Returns:
            Domain model instance or None if not found
        """
        return await self.find_one({"_id": document_id})

    async def find_one(self, filter_dict: Dict[str, Any]) -> Optional[T]:
        """
        Retrieve the first document matching the filter.

        Args:
            filter_dict: MongoDB query filter

        Returns:
            Domain model instance or None if not found
        """
        doc = await self.collection.find_one(filter_dict)

        if doc is None:
            return None

        return self._to_model(doc)

    async def find_many(
        self,
        filter_dict: Dict[str, Any],
        limit: int = 100,
        skip: int = 0,
        sort: Optional[List[tuple]] = None
    ) -> List[T]:
        """
        Retrieve multiple documents matching the filter.

        Args:
            filter_dict: MongoDB query filter
            limit: Maximum number of documents to return
            skip: Number of documents to skip (pagination)
            sort: List of (field, direction) tuples for sorting

        Returns:
            List of domain model instances
        """
        cursor = self.collection.find(filter_dict).skip(skip).limit(limit)

        if sort:
            cursor = cursor.sort(sort)

        docs = await cursor.to_list(length=limit)

        models = []
        for doc in docs:
            try:
                models.append(self._to_model(doc))
            except ValueError as e:
                # One unreadable row must not hide the rest of the batch
                logger.bind(document_id=str(doc.get("_id"))).warning(
                    f"Skipping unreadable document in {self.collection_name}: {e}"
                )
        return models

    async def update_fields(
        self,
        filter_dict: Dict[str, Any],
        update: Dict[str, Any]
    ) -> int:
        """
        Apply an update document to the first match.

        Args:
            filter_dict: MongoDB query filter (usually includes `_id`)
            update: MongoDB update document ($set, $max, ...)

        Returns:
            Number of matched documents (0 or 1)
        """
        result = await self.collection.update_one(filter_dict, update)

        logger.bind(filter=str(filter_dict), matched=result.matched_count).debug(
            f"Updated document in {self.collection_name}"
        )

        return result.matched_count

    async def count(self, filter_dict: Optional[Dict[str, Any]] = None) -> int:
        """
        Count documents matching the filter.

        Args:
            filter_dict: MongoDB query filter (None for all documents)

        Returns:
            Number of matching documents
        """
        filter_dict = filter_dict or {}
        return await self.collection.count_documents(filter_dict)

    def _to_model(self, doc: Dict[str, Any]) -> T:
        """
        Convert MongoDB document to Pydantic model instance.

        Args:
            doc: Raw MongoDB document dict

        Returns:
            Domain model instance
        """
        model_fields = self.model_class.model_fields.keys()

        cleaned_doc = {
            k: v for k, v in doc.items()
            if k in model_fields or k == "_id"
        }

        return self.model_class.model_validate(cleaned_doc)
