
from .support import (get_log, debug_silence, bhprint,
                      set_logging_level, set_logging_color,
                      bintohex, bintolehex, hextobin, lehextobin,
                      is_hex_string, EXIT_ARGERROR, EXIT_FAILURE,
                      EXIT_SUCCESS, BH_APP_NAME, BH_CORE_VERSION)
from .twisted_utils import BytesProducer, get_rpc_agent
