class ContractError(RuntimeError):
    """A collaborator does not honour the contract the engine relies on.

    This is a configuration fault, not a runtime condition: the engine cannot
    keep its bookkeeping consistent and stops instead of guessing.
    """


class ViewFactoryContractError(ContractError):
    pass


class ScrollHostContractError(ContractError):
    pass


VIEW_FACTORY_METHODS = ('create', 'measure', 'reposition', 'detach', 'destroy', 'update_data')
SCROLL_HOST_METHODS = ('scroll_top', 'viewport_height', 'scroll_height', 'set_track_height', 'scroll_by')


def require_methods(target, names, error_cls, role: str):
    missing = [name for name in names if not callable(getattr(target, name, None))]
    if missing:
        raise error_cls(f"{role} {type(target).__name__} is missing: {', '.join(missing)}")
