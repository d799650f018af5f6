# 检测/对齐/光照/训练的默认参数。
# 历史版本里这些值多次调整过（scale 1.05~1.3，minNeighbors 3~5），这里统一用具名常量维护，
# 各组件的 *Config dataclass 以这些常量为默认值。

# Working resolution: input photos are downscaled to this width before face detection.
DOWNSCALED_IMAGE_WIDTH = 320

# Face cascade
FACE_CASCADE_FILENAME = "haarcascade_frontalface_default.xml"
FACE_SCALE_FACTOR = 1.05  # alternates used before: 1.1, 1.3
FACE_MIN_NEIGHBORS = 5  # alternate: 3
MIN_FACE_SIZE = (30, 30)
MAX_FACE_SIZE = (DOWNSCALED_IMAGE_WIDTH, DOWNSCALED_IMAGE_WIDTH * 2)

# Eye cascade
EYE_CASCADE_FILENAME = "haarcascade_eye.xml"
EYE_SCALE_FACTOR = 1.05
EYE_MIN_NEIGHBORS = 5
MIN_EYE_SIZE = (20, 20)

# Eye search areas, as fractions of the face crop width/height.
EYE_AREA_WIDTH = 0.30
EYE_AREA_HEIGHT = 0.30
LEFT_EYE_AREA_X = 0.16
LEFT_EYE_AREA_Y = 0.22
RIGHT_EYE_AREA_X = 1.0 - LEFT_EYE_AREA_X - EYE_AREA_WIDTH + 0.03
RIGHT_EYE_AREA_Y = LEFT_EYE_AREA_Y

# Where the eyes should land in the canonical face, as fractions of its size.
DESIRED_LEFT_EYE_X = 0.16
DESIRED_LEFT_EYE_Y = 0.14
DESIRED_RIGHT_EYE_X = 1.0 - DESIRED_LEFT_EYE_X

# Canonical face
DESIRED_FACE_WIDTH = 320
DESIRED_FACE_HEIGHT = 320
WARP_BORDER_VALUE = 128

# Inter-eye distances below this (pixels) are treated as a failed eye detection.
MIN_EYE_DISTANCE = 1e-3

# Bilateral filter applied after the split-histogram blend.
BILATERAL_DIAMETER = 0
BILATERAL_SIGMA_COLOR = 20.0
BILATERAL_SIGMA_SPACE = 2.0

# Training
MINIMUM_SAMPLES_FOR_TRAINING = 1
# nu bounds the fraction of enrolled samples the SVM may leave outside its boundary.
ONE_CLASS_NU = 0.05
# Slack below the lowest in-sample score that still counts as a match.
ONE_CLASS_TOLERANCE = 1e-6
ONE_CLASS_GAMMA = "scale"
LINEAR_SVM_C = 1.0

# Persistence
MATRIX_FILE_SUFFIX = ".data"
MATRIX_SCHEMA_VERSION = "v1"
