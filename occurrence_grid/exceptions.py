class ObservationSchemaError(Exception):
    pass


class EventDateError(Exception):
    pass


class TaxonConflictError(Exception):
    pass


class GridStoreError(Exception):
    pass


class GridStoreClosedError(GridStoreError):
    pass


class WindowShapeError(GridStoreError):
    pass


class GridVerificationError(Exception):
    pass
