"""CV change detection and classifier configuration."""
import numpy as np

# Change detector
WORKING_WIDTH = 320  # Frames are down-sampled to this width before differencing

# Classifier labels, index-aligned with the model's logits
LABELS = ("no_gecko", "gecko")
GECKO_LABEL = "gecko"

# ImageNet normalisation used when the model was trained
IMAGENET_MEAN = np.array([0.485, 0.456, 0.406], dtype=np.float32)
IMAGENET_STD = np.array([0.229, 0.224, 0.225], dtype=np.float32)

# Simulator reports a gecko when its random draw exceeds this (about 30 % of frames)
SIMULATOR_POSITIVE_CUTOFF = 0.7
