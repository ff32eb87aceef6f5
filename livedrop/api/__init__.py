import importlib
import pkgutil


def include_routers(app):
    """livedrop.api 하위 모듈 중 router 를 가진 모듈을 모두 등록"""
    for module_info in sorted(pkgutil.iter_modules(__path__), key=lambda info: info.name):
        module = importlib.import_module(f"{__name__}.{module_info.name}")
        router = getattr(module, "router", None)
        if router is not None:
            app.include_router(router)
