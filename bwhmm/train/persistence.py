"""
Model persistence and metadata storage for trained HMM models.

This module handles serialization/deserialization of HMM models using joblib,
JSON metadata storage with the convergence trace and hyperparameters, and
plain-text export of the trained matrices.
"""

import json
import joblib
from pathlib import Path
from typing import Dict, Any, Tuple, List, Optional
from datetime import datetime
import numpy as np

from ..hmm.model import DiscreteHMM
from ..io.files import save_matrix
from ..config import get_config
from ..exceptions import ModelPersistenceError, InvalidModelInputError
from ..logger import get_logger

logger = get_logger(__name__)


class ModelPersistence:
    """
    Handles model serialization, deserialization, and metadata management.

    Layout inside ``models_dir``::

        <name>.pkl              joblib-serialized DiscreteHMM
        <name>_meta.json        training metadata
        <name>/                 plain-text matrices (optional export)
    """

    def __init__(self, models_dir: Optional[str] = None):
        """
        Initialize ModelPersistence with target directory.

        Args:
            models_dir: Directory to store models and metadata (default: config)
        """
        if models_dir is None:
            models_dir = get_config('persistence', 'models_dir') or 'models'

        self.models_dir = Path(models_dir)
        self.models_dir.mkdir(parents=True, exist_ok=True)

        logger.debug(f"ModelPersistence initialized: {self.models_dir}")

    def _paths(self, name: str) -> Tuple[Path, Path]:
        safe_name = self._sanitize_filename(name)
        return self.models_dir / f"{safe_name}.pkl", self.models_dir / f"{safe_name}_meta.json"

    def exists(self, name: str) -> bool:
        """Whether a model file is stored under this name."""
        return self._paths(name)[0].exists()

    def save_model(self,
                   name: str,
                   model: DiscreteHMM,
                   metadata: Dict[str, Any],
                   overwrite: bool = False) -> Tuple[str, str]:
        """
        Save HMM model and metadata to disk.

        Args:
            name: Model name
            model: Trained DiscreteHMM model
            metadata: Training metadata dictionary
            overwrite: Whether to overwrite existing files (default: False)

        Returns:
            Tuple of (model_path, metadata_path) for saved files

        Raises:
            ModelPersistenceError: If saving fails or files exist without overwrite
        """
        try:
            model_path, metadata_path = self._paths(name)

            if not overwrite:
                if model_path.exists():
                    raise ModelPersistenceError(f"Model file already exists: {model_path}")
                if metadata_path.exists():
                    raise ModelPersistenceError(f"Metadata file already exists: {metadata_path}")

            serializable_metadata = self._prepare_metadata_for_serialization(metadata)

            serializable_metadata.update({
                'name': name,
                'saved_at': datetime.now().isoformat(),
                'model_file': model_path.name,
                'metadata_file': metadata_path.name,
                'model_class': model.__class__.__name__,
                'model_parameters': {
                    'n_states': model.n_states,
                    'n_symbols': model.n_symbols
                }
            })

            metadata_text = json.dumps(serializable_metadata, indent=2, ensure_ascii=False)

            compress = get_config('persistence', 'compress')
            logger.debug(f"Saving model to: {model_path}")
            joblib.dump(model, model_path, compress=3 if compress is None else compress)

            logger.debug(f"Saving metadata to: {metadata_path}")
            try:
                with open(metadata_path, 'w', encoding='utf-8') as f:
                    f.write(metadata_text)
            except OSError:
                # A model file without metadata can't be loaded
                model_path.unlink()
                raise

            logger.info(f"Saved model '{name}': {model_path}")

            return str(model_path), str(metadata_path)

        except Exception as e:
            if isinstance(e, ModelPersistenceError):
                raise
            raise ModelPersistenceError(f"Failed to save model {name}: {str(e)}")

    def load_model(self, name: str) -> Tuple[DiscreteHMM, Dict[str, Any]]:
        """
        Load HMM model and metadata from disk.

        Args:
            name: Model name

        Returns:
            Tuple of (model, metadata)

        Raises:
            ModelPersistenceError: If loading fails or files not found
        """
        try:
            model_path, metadata_path = self._paths(name)

            if not model_path.exists():
                raise ModelPersistenceError(f"Model file not found: {model_path}")
            if not metadata_path.exists():
                raise ModelPersistenceError(f"Metadata file not found: {metadata_path}")

            logger.debug(f"Loading model from: {model_path}")
            model = joblib.load(model_path)

            if not isinstance(model, DiscreteHMM):
                raise ModelPersistenceError(f"Loaded object is not a DiscreteHMM: {type(model)}")

            with open(metadata_path, 'r', encoding='utf-8') as f:
                metadata = json.load(f)

            self._validate_model_metadata_consistency(model, metadata)

            logger.info(f"Loaded model '{name}'")

            return model, metadata

        except Exception as e:
            if isinstance(e, ModelPersistenceError):
                raise
            raise ModelPersistenceError(f"Failed to load model {name}: {str(e)}")

    def export_matrices(self,
                        name: str,
                        model: DiscreteHMM,
                        convergence_trace: Optional[np.ndarray] = None) -> Dict[str, str]:
        """
        Write the model matrices and convergence trace as plain-text tables.

        Returns:
            Dictionary mapping matrix name to written path
        """
        export_dir = self.models_dir / self._sanitize_filename(name)
        export_dir.mkdir(parents=True, exist_ok=True)

        matrices = {
            'start_prob': model.start_prob,
            'transition_prob': model.transition_prob,
            'emission_prob': model.emission_prob
        }
        if convergence_trace is not None:
            matrices['convergence_trace'] = convergence_trace

        written = {}
        for matrix_name, matrix in matrices.items():
            path = export_dir / f"{matrix_name}.txt"
            save_matrix(path, matrix)
            written[matrix_name] = str(path)

        logger.debug(f"Exported {len(written)} matrices to {export_dir}")
        return written

    def list_available_models(self) -> List[Dict[str, Any]]:
        """
        List all available models with their basic information.

        Returns:
            List of dictionaries with model information
        """
        models_info = []

        for model_file in sorted(self.models_dir.glob("*.pkl")):
            name = model_file.stem
            metadata_file = self.models_dir / f"{name}_meta.json"

            info = {
                'name': name,
                'model_file': str(model_file),
                'metadata_file': str(metadata_file),
                'metadata_exists': metadata_file.exists(),
                'model_size_mb': model_file.stat().st_size / (1024 * 1024)
            }

            if metadata_file.exists():
                try:
                    with open(metadata_file, 'r', encoding='utf-8') as f:
                        metadata = json.load(f)

                    params = metadata.get('model_parameters', {})
                    info.update({
                        'n_states': params.get('n_states', 'unknown'),
                        'n_symbols': params.get('n_symbols', 'unknown'),
                        'iterations': metadata.get('iterations', 'unknown'),
                        'final_log_likelihood': metadata.get('final_log_likelihood', 'unknown'),
                        'saved_at': metadata.get('saved_at', 'unknown')
                    })
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning(f"Unreadable metadata {metadata_file}: {e}")
                    info['metadata_error'] = True

            models_info.append(info)

        return models_info

    def delete_model(self, name: str) -> bool:
        """
        Delete model and metadata files.

        Returns:
            True if any file was deleted, False otherwise
        """
        model_path, metadata_path = self._paths(name)
        deleted_files = []

        for path in (model_path, metadata_path):
            if path.exists():
                path.unlink()
                deleted_files.append(str(path))

        if deleted_files:
            logger.info(f"Deleted files for model {name}: {deleted_files}")
            return True

        logger.warning(f"No files found to delete for model: {name}")
        return False

    def _sanitize_filename(self, name: str) -> str:
        """
        Sanitize model name for use as filename.
        """
        safe_name = name.replace(' ', '_').replace('-', '_')
        safe_name = ''.join(c for c in safe_name if c.isalnum() or c == '_')
        return safe_name.lower()

    def _prepare_metadata_for_serialization(self, metadata: Dict[str, Any]) -> Dict[str, Any]:
        """
        Convert numpy arrays and scalars in metadata to JSON-serializable values.
        """
        serializable = {}

        for key, value in metadata.items():
            serializable[key] = self._to_serializable(value)

        return serializable

    def _to_serializable(self, value: Any) -> Any:
        if isinstance(value, np.ndarray):
            return value.tolist()
        if isinstance(value, np.integer):
            return int(value)
        if isinstance(value, np.floating):
            return float(value)
        if isinstance(value, dict):
            return self._prepare_metadata_for_serialization(value)
        if isinstance(value, (list, tuple)):
            return [self._to_serializable(item) for item in value]
        return value

    def _validate_model_metadata_consistency(self, model: DiscreteHMM, metadata: Dict[str, Any]):
        """
        Validate that loaded model is consistent with its metadata.

        Raises:
            ModelPersistenceError: If inconsistencies are found
        """
        model_params = metadata.get('model_parameters', {})

        if model_params.get('n_states') != model.n_states:
            raise ModelPersistenceError(
                f"Model n_states mismatch: metadata={model_params.get('n_states')}, "
                f"model={model.n_states}"
            )

        if model_params.get('n_symbols') != model.n_symbols:
            raise ModelPersistenceError(
                f"Model n_symbols mismatch: metadata={model_params.get('n_symbols')}, "
                f"model={model.n_symbols}"
            )

        try:
            model.validate_stochastic_matrices()
        except InvalidModelInputError as e:
            raise ModelPersistenceError(f"Loaded model has invalid stochastic matrices: {e}")
