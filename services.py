import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult

from database import get_db, get_documents
from schemas import CropIn, InterestIn, InterestStatusUpdate, UserIn

logger = logging.getLogger(__name__)

CROPS = "crops"
USERS = "users"
LATEST_LIMIT = 6

# Fields a crop update may never overwrite
_IMMUTABLE_CROP_FIELDS = ("_id", "id", "createdAt")


class ListingError(Exception):
    """Error surfaced to the client as ``{"message": ..., "error": ...}``."""

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error


class NotFoundError(ListingError):
    status_code = 404


class DuplicateInterestError(ListingError):
    status_code = 400


# -----------------------
# Serialization
# -----------------------

def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
        elif isinstance(v, datetime):
            d[k] = v.isoformat()
        elif isinstance(v, dict):
            d[k] = serialize_doc(v)
        elif isinstance(v, list):
            d[k] = [serialize_doc(x) if isinstance(x, dict) else x for x in v]
    return d


def insert_ack(result: InsertOneResult) -> Dict[str, Any]:
    return {"acknowledged": result.acknowledged, "insertedId": str(result.inserted_id)}


def update_ack(result: UpdateResult) -> Dict[str, Any]:
    upserted_id = result.upserted_id
    return {
        "acknowledged": result.acknowledged,
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
        "upsertedCount": 1 if upserted_id is not None else 0,
        "upsertedId": str(upserted_id) if upserted_id is not None else None,
    }


def delete_ack(result: DeleteResult) -> Dict[str, Any]:
    return {"acknowledged": result.acknowledged, "deletedCount": result.deleted_count}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _find_crop(crop_id: str) -> Dict[str, Any]:
    crop = get_db()[CROPS].find_one({"_id": ObjectId(crop_id)})
    if not crop:
        raise NotFoundError("Crop not found")
    return crop


# -----------------------
# Crops
# -----------------------

def list_crops(search: Optional[str] = None) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if search:
        # Literal substring, not a user-supplied pattern
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query = {"$or": [{"name": pattern}, {"type": pattern}, {"location": pattern}]}
    return [serialize_doc(c) for c in get_documents(CROPS, query)]


def latest_crops() -> List[Dict[str, Any]]:
    crops = get_documents(CROPS, sort=[("_id", -1)], limit=LATEST_LIMIT)
    return [serialize_doc(c) for c in crops]


def get_crop(crop_id: str) -> Dict[str, Any]:
    return serialize_doc(_find_crop(crop_id))


def crops_by_owner(email: str) -> List[Dict[str, Any]]:
    return [serialize_doc(c) for c in get_documents(CROPS, {"owner.ownerEmail": email})]


def create_crop(crop: CropIn) -> Dict[str, Any]:
    doc = crop.model_dump(exclude_unset=True)
    doc.pop("_id", None)
    doc.pop("id", None)
    doc["interests"] = []
    doc["createdAt"] = _now()
    result = get_db()[CROPS].insert_one(doc)
    logger.info("Created crop %s", result.inserted_id)
    return insert_ack(result)


def update_crop(crop_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    changes = {k: v for k, v in payload.items() if k not in _IMMUTABLE_CROP_FIELDS}
    result = get_db()[CROPS].update_one({"_id": ObjectId(crop_id)}, {"$set": changes})
    logger.info("Updated crop %s (matched=%s)", crop_id, result.matched_count)
    return update_ack(result)


def delete_crop(crop_id: str) -> Dict[str, Any]:
    result = get_db()[CROPS].delete_one({"_id": ObjectId(crop_id)})
    logger.info("Deleted crop %s (deleted=%s)", crop_id, result.deleted_count)
    return delete_ack(result)


# -----------------------
# Interests
# -----------------------

DUPLICATE_INTEREST = "You have already sent an interest for this crop"


def add_interest(interest: InterestIn) -> Dict[str, Any]:
    crop = _find_crop(interest.cropId)
    if any(i.get("userEmail") == interest.userEmail for i in crop.get("interests") or []):
        raise DuplicateInterestError(DUPLICATE_INTEREST)

    payload = interest.model_dump()
    payload.pop("_id", None)
    payload.pop("id", None)
    new_interest = {"_id": ObjectId(), **payload, "status": "pending", "createdAt": _now()}

    # The $ne guard makes the duplicate check and the append one atomic step
    crops = get_db()[CROPS]
    result = crops.update_one(
        {"_id": crop["_id"], "interests.userEmail": {"$ne": interest.userEmail}},
        {"$push": {"interests": new_interest}},
    )
    if result.matched_count == 0:
        if crops.count_documents({"_id": crop["_id"]}) == 0:
            raise NotFoundError("Crop not found")
        raise DuplicateInterestError(DUPLICATE_INTEREST)

    logger.info("Interest %s from %s added to crop %s", new_interest["_id"], interest.userEmail, crop["_id"])
    return update_ack(result)


def interests_for_user(email: str) -> List[Dict[str, Any]]:
    results = []
    for crop in get_documents(CROPS, {"interests.userEmail": email}):
        interest = next((i for i in crop.get("interests") or [] if i.get("userEmail") == email), None)
        if interest is None:
            continue
        results.append({
            **interest,
            "cropName": crop.get("name"),
            "cropOwner": (crop.get("owner") or {}).get("ownerName"),
            "cropId": crop["_id"],
        })
    return [serialize_doc(r) for r in results]


def update_interest_status(update: InterestStatusUpdate) -> Dict[str, Any]:
    crop = _find_crop(update.cropId)
    interest = next(
        (i for i in crop.get("interests") or [] if str(i.get("_id")) == update.interestId),
        None,
    )
    if interest is None:
        raise NotFoundError("Interest not found")

    changes: Dict[str, Any] = {"$set": {"interests.$.status": update.status}}
    if update.status == "accepted":
        # Applied in the same write as the status change
        changes["$inc"] = {"quantity": -(interest.get("quantity") or 0)}

    result = get_db()[CROPS].update_one({"_id": crop["_id"], "interests._id": interest["_id"]}, changes)
    logger.info("Interest %s on crop %s set to %s", update.interestId, update.cropId, update.status)
    return update_ack(result)


# -----------------------
# Users
# -----------------------

def save_user(user: UserIn) -> Dict[str, Any]:
    doc = user.model_dump()
    doc.pop("_id", None)
    doc.pop("id", None)
    result = get_db()[USERS].update_one({"email": user.email}, {"$set": doc}, upsert=True)
    return update_ack(result)


def get_user(email: str) -> Optional[Dict[str, Any]]:
    return serialize_doc(get_db()[USERS].find_one({"email": email}))
