"""Face normalization and eigenface recognition.

- `facenorm.face`: cascade detection, eye alignment and lighting normalization
- `facenorm.model`: enrollment corpus, PCA/classifier training and prediction
"""
