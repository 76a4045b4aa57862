# World identity. All generated terrain is a pure function of this seed.
WORLD_SEED = '1'

# Size of chunks used for streaming (cube edge in voxels).
CHUNK_SIZE = 16 #width, depth and height (x, y and z)
MIN_CHUNK_SIZE = 4
MAX_CHUNK_SIZE = 128

# Chunks are streamed on the x/z grid at this chunk y.
STREAM_CHUNK_Y = 0

# Number of chunks in each x/z direction kept loaded around the observer.
VIEW_RADIUS = 6 #6 loads a 13x13 area
# Extra ring of chunks kept resident before eviction (avoids load/evict thrashing).
EVICT_MARGIN = 1

# Block used to fill new chunks before carving.
WORLD_BASE_BLOCK = 'Stone'

# Terrain generation defaults (also the remote request defaults).
DEFAULT_REQUEST_SIZE = 64 # only used when a request omits size
DEFAULT_SEED = 'seed'
SURFACE_SCALE = 0.04
CAVES_SCALE = 0.16
CAVES_THRESHOLD = 0.72
GRASS_DEPTH = 2
DIRT_DEPTH = 3

# Chunk generation server.
SERVER_IP = None # None streams without a server (local generation only)
SERVER_PORT = 20232
AUTHKEY = b'password'
# Seconds a client waits for a chunk response before falling back.
FETCH_TIMEOUT = 5.0

# Cache directive sent with every chunk (generated chunks never change).
CACHE_MAX_AGE = 31536000 # one year
# Max chunks held in the server cache.
CHUNK_CACHE_ENTRIES = 512
# Max (tag, payload) pairs a client remembers for conditional requests.
CLIENT_TAG_CACHE_ENTRIES = 1024

# Loader worker threads (each fetches or generates one chunk at a time).
LOADER_WORKERS = 4

# Viewer
TICKS_PER_SEC = 60
FLYING_SPEED = 30
CAMERA_INITIAL_POSITION = (0, 24, 0)
SKY_COLOR = (0.5, 0.69, 1.0)
FOG_START = 60.0
FOG_END = 110.0

# Logging: DEBUG, INFO, WARN or ERROR.
LOG_LEVEL = 'INFO'
# Enable ANSI colors in logs.
LOG_COLOR = True
# Append log lines to this file as well as printing them (None to disable).
LOG_FILE_PATH = None
# Log every chunk admitted to / evicted from the resident set.
LOG_STREAM_CHUNKS = False
