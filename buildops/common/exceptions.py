from fastapi import HTTPException, status


class BuildOpsException(HTTPException):
    def __init__(self, detail: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, detail=detail)


class NotFoundError(BuildOpsException):
    def __init__(self, resource: str, resource_id: str | None = None):
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} '{resource_id}' not found"
        super().__init__(detail=detail, status_code=status.HTTP_404_NOT_FOUND)


class BadRequestError(BuildOpsException):
    def __init__(self, detail: str):
        super().__init__(detail=detail, status_code=status.HTTP_400_BAD_REQUEST)


class UnsupportedEntityError(BuildOpsException):
    def __init__(self, entity_type: str):
        super().__init__(
            detail=f"Unsupported change order entity type: '{entity_type}'",
            status_code=422,
        )
        self.entity_type = entity_type


class WriteError(BuildOpsException):
    def __init__(self, operation: str, detail: str | None = None):
        msg = f"Failed to {operation}"
        if detail:
            msg += f": {detail}"
        super().__init__(detail=msg, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.operation = operation
