from importlib import import_module

# Re-export individual router modules so they can be imported as attributes

auth = import_module('.auth', __name__)
whiteboards = import_module('.whiteboards', __name__)
export = import_module('.export', __name__)
label_ws = import_module('.label_ws', __name__)
