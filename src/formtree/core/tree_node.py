"""
Core pydantic base model for the formtree engine.

Every structured rule object read out of a schema node (validation rules,
conditionals, logic rules, option objects) derives from `FormModel` so that
they share one parsing policy: camelCase keys from the JSON document map onto
snake_case attributes, and unknown keys are kept rather than rejected.
"""

from pydantic import BaseModel, ConfigDict


class FormModel(BaseModel):
    """
    Base class for rule and option models parsed out of form documents.

    Form documents are authored by external tools, so models accept both the
    document spelling (`minLength`) and the Python attribute name
    (`min_length`), and keep any extra keys for round trips.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)
