# global_parameters.py


class GlobalParameters:
    def __init__(self, initial_params=None):
        """
        all parameters are defined with underscore, _, instead of spaces
        """
        self._params = {
            # Curvature kind written to the mesh after load/relax/flatten:
            # "gaussian", "mean" or "max" (max = gaussian + mean).
            "curvature_kind": "mean",
            # Smoother defaults:
            #   "uniform"        - umbrella operator.
            #   "cotangent"      - clamped cotangent weights.
            #   "cotangent_area" - cotangent step divided by 4 * mixed area.
            #   "sparse"         - one global sparse solve per call.
            "iteration_method": "cotangent",
            "relax_iterations": 10,
            "relax_lambda": 0.5,
            # The area-weighted step is only taken where lambda / A exceeds
            # this value; other vertices take the plain cotangent step.
            "area_step_threshold": 200.0,
            # Parameterization boundary: "circle" or "rectangle".
            "boundary_shape": "circle",
            "flatten_parameterization": False,
            "cvt_point_count": 100,
            "lloyd_iterations": 1,
            "solver_tolerance": 1e-10,
            "solver_max_iterations": 2000,
            "epsilon": 1e-10,
            "random_seed": None,
            # Viewport used to fit an image domain for the CVT engine.
            "viewport_width": 800,
            "viewport_height": 800,
        }
        if initial_params:
            self.update(initial_params)

    def __getattr__(self, name):
        """Attribute access for known parameter keys.

        Parameters can be read as ``params.relax_lambda`` or through
        ``params.get("relax_lambda")``; both read the same ``_params`` dict.
        """
        params = self.__dict__.get("_params")
        if params is not None and name in params:
            return params[name]
        raise AttributeError(
            f"{type(self).__name__!s} object has no attribute {name!r}"
        )

    def __setattr__(self, name, value):
        """Attribute assignment for known parameter keys."""
        if name == "_params":
            object.__setattr__(self, name, value)
            return
        params = self.__dict__.get("_params")
        if params is not None and name in params:
            params[name] = value
            return
        object.__setattr__(self, name, value)

    def get(self, key, default=None):
        """Retrieve a parameter value, or return a default if not found."""
        return self._params.get(key, default)

    def set(self, key, value):
        """Set or update a parameter."""
        self._params[key] = value

    def update(self, params):
        """Update multiple parameters at once."""
        self._params.update(params)

    def __contains__(self, key):
        return key in self._params

    def __repr__(self):
        return f"GlobalParameters({self._params})"

    def to_dict(self):
        """Convert the parameters to a dictionary for serialization."""
        return dict(self._params)
