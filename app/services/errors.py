from __future__ import annotations


class AssetError(Exception):
    code = "asset_error"


class ValidationError(AssetError):
    code = "validation_error"


class PreconditionViolationError(AssetError):
    code = "precondition_violation"


class NotFoundError(AssetError):
    code = "not_found"


class StoreError(AssetError):
    code = "store_error"
