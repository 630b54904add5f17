"""SQL statements used by the probe catalogue.

Every statement carries the ``/*+DM_EXPORTER*/`` hint so exporter traffic
can be told apart in the server's SQL logs. Statements with optional
columns use ``str.format`` placeholders filled by ``optional_column``.
"""


def optional_column(name: str, present: bool, prefix: str = "") -> str:
    """Return the column reference, or a constant placeholder if absent."""
    if present:
        return f"{prefix}{name}"
    return f"'' AS {name}"


SYSTEM_INFO = """
SELECT /*+DM_EXPORTER*/ N_CPU, TOTAL_PHY_SIZE, TOTAL_VIR_SIZE, TOTAL_DISK_SIZE
FROM V$SYSTEMINFO
"""

TABLESPACE_INFO = """
SELECT /*+DM_EXPORTER*/ F.TABLESPACE_NAME, F.TOTAL_SIZE, NVL(S.FREE_SIZE, 0) FREE_SIZE
FROM (SELECT TABLESPACE_NAME, SUM(BYTES) TOTAL_SIZE
      FROM DBA_DATA_FILES GROUP BY TABLESPACE_NAME) F
LEFT JOIN (SELECT TABLESPACE_NAME, SUM(BYTES) FREE_SIZE
           FROM DBA_FREE_SPACE GROUP BY TABLESPACE_NAME) S
ON F.TABLESPACE_NAME = S.TABLESPACE_NAME
ORDER BY F.TABLESPACE_NAME
"""

TABLESPACE_FILE_INFO = """
SELECT /*+DM_EXPORTER*/ PATH,
       TOTAL_SIZE * PAGE_SIZE TOTAL_SIZE,
       FREE_SIZE * PAGE_SIZE FREE_SIZE,
       CASE AUTO_EXTEND WHEN 1 THEN 'YES' ELSE 'NO' END AUTO_EXTEND,
       TO_CHAR(NEXT_SIZE) NEXT_SIZE,
       TO_CHAR(MAX_SIZE) MAX_SIZE
FROM V$DATAFILE
ORDER BY PATH
"""

MEMORY_POOL_INFO = """
SELECT /*+DM_EXPORTER*/ NAME ZONE_TYPE, TARGET_SIZE CURR_VAL,
       RESERVED_SIZE RES_VAL, TOTAL_SIZE TOTAL_VAL
FROM V$MEM_POOL
"""

JOB_ERROR_COUNT = """
SELECT /*+DM_EXPORTER*/ COUNT(*) ERROR_NUM
FROM SYSJOB.SYSJOBHISTORIES2
WHERE ERRCODE <> 0 AND START_TIME > SYSDATE - 1
"""

MONITOR_INFO = """
SELECT /*+DM_EXPORTER*/ TO_CHAR(DW_CONN_TIME, 'YYYY-MM-DD HH24:MI:SS'),
       MON_CONFIRM, MON_ID, MON_IP, MON_VERSION, MID
FROM V$DMMONITOR
"""

STATEMENT_TYPE_COUNT = """
SELECT /*+DM_EXPORTER*/ NAME, STAT_VAL
FROM V$SYSSTAT
WHERE NAME IN ('select statements', 'insert statements', 'delete statements',
               'update statements', 'ddl statements', 'transaction total count')
"""

PARAMETER_INFO = """
SELECT /*+DM_EXPORTER*/ PARA_NAME, PARA_VALUE
FROM V$DM_INI
WHERE PARA_NAME IN ('MAX_SESSIONS', 'MAX_SESSION_STATEMENT', 'BUFFER',
                    'MEMORY_POOL', 'MEMORY_TARGET', 'MAX_OS_MEMORY',
                    'PORT_NUM', 'ARCH_INI', 'UNDO_RETENTION')
"""

USER_LIST_INFO = """
SELECT /*+DM_EXPORTER*/ U.USERNAME,
       CASE WHEN S.RO_FLAG = 1 THEN 'Y' ELSE 'N' END READ_ONLY,
       U.ACCOUNT_STATUS,
       TO_CHAR(U.EXPIRY_DATE, 'YYYY-MM-DD HH24:MI:SS') EXPIRY_DATE,
       TO_CHAR(TRUNC(U.EXPIRY_DATE - SYSDATE)) EXPIRY_DATE_DAY,
       U.DEFAULT_TABLESPACE,
       U.PROFILE,
       TO_CHAR(U.CREATED, 'YYYY-MM-DD HH24:MI:SS') CREATE_TIME
FROM DBA_USERS U
LEFT JOIN SYSUSERS S ON U.USER_ID = S.ID
"""

VERSION_DETAIL = """
SELECT /*+DM_EXPORTER*/ SVR_VERSION ID_CODE, BUILD_TYPE, INNER_VER
FROM V$INSTANCE
"""

VERSION_BUILD_POSITION = """
SELECT /*+DM_EXPORTER*/ POSITION('BUILD_VERSION', TO_CHAR(TABLEDEF('SYS', 'V$INSTANCE'))) POS
FROM DUAL
"""

VERSION_WITH_BUILD = """
SELECT /*+DM_EXPORTER*/ SVR_VERSION || '-' || BUILD_VERSION VERSION FROM V$INSTANCE
"""

VERSION_BANNER = """
SELECT /*+DM_EXPORTER*/ TOP 1 BANNER || ' ' || ID_CODE VERSION
FROM V$VERSION WHERE BANNER LIKE 'DM Database Server%'
"""

ARCH_INI = """
SELECT /*+DM_EXPORTER*/ PARA_VALUE FROM V$DM_INI WHERE PARA_NAME = 'ARCH_INI'
"""

ARCH_LOCAL_STATUS = """
SELECT /*+DM_EXPORTER*/ CASE ARCH_STATUS WHEN 'VALID' THEN '1' WHEN 'INVALID' THEN '0' END
FROM V$ARCH_STATUS WHERE ARCH_TYPE = 'LOCAL'
"""

ARCH_STATUS_DETAIL = """
SELECT /*+DM_EXPORTER*/ CASE ARCH_STATUS WHEN 'VALID' THEN 1 ELSE 0 END ARCH_STATUS,
       ARCH_TYPE, ARCH_DEST, ARCH_SRC
FROM V$ARCH_STATUS
"""

ARCH_SEND_DETAIL = """
SELECT /*+DM_EXPORTER*/ S.ARCH_DEST, S.ARCH_TYPE,
       S.MAX_SEND_LSN - S.LAST_SEND_LSN LSN_DIFF,
       {last_send_code}, {last_send_desc},
       TO_CHAR(S.LAST_START_TIME) LAST_START_TIME,
       TO_CHAR(S.LAST_END_TIME) LAST_END_TIME,
       TO_CHAR(S.LAST_SEND_TIME) LAST_SEND_TIME
FROM V$ARCH_SEND_INFO S
"""

ARCH_SEND_DETAIL_WITH_APPLY = """
SELECT /*+DM_EXPORTER*/ S.ARCH_DEST, S.ARCH_TYPE,
       NVL(A.APPLY_LSN_GAP, S.MAX_SEND_LSN - S.LAST_SEND_LSN) LSN_DIFF,
       {last_send_code}, {last_send_desc},
       TO_CHAR(S.LAST_START_TIME) LAST_START_TIME,
       TO_CHAR(S.LAST_END_TIME) LAST_END_TIME,
       TO_CHAR(S.LAST_SEND_TIME) LAST_SEND_TIME
FROM V$ARCH_SEND_INFO S
LEFT JOIN (SELECT TASK_SLOT_ID, MAX(RLOG_PKG_LSN) - MAX(APPLY_LSN) APPLY_LSN_GAP
           FROM V$ARCH_APPLY_INFO GROUP BY TASK_SLOT_ID) A
ON S.ARCH_DEST = A.TASK_SLOT_ID
"""

ARCH_SWITCH_RATE = """
SELECT /*+DM_EXPORTER*/ TOP 1 STATUS,
       TO_CHAR(CREATE_TIME, 'YYYY-MM-DD HH24:MI:SS') CREATE_TIME,
       PATH, TO_CHAR(CLSN) CLSN, TO_CHAR(SRC_DB_MAGIC) SRC_DB_MAGIC,
       DATEDIFF(MI, LAG(CREATE_TIME) OVER (ORDER BY CREATE_TIME), CREATE_TIME) MINUS_DIFF
FROM V$ARCH_FILE
ORDER BY CREATE_TIME DESC
"""

BUFFER_POOL_HIT_RATE = """
SELECT /*+DM_EXPORTER*/ NAME, SUM(RAT_HIT) / COUNT(*) HIT_RATE
FROM V$BUFFERPOOL
GROUP BY NAME
"""

DUAL = "SELECT /*+DM_EXPORTER*/ 1 FROM DUAL"

PURGE_INFO = """
SELECT /*+DM_EXPORTER*/ OBJ_NUM, IS_RUNNING, PURG_FOR_TS FROM V$PURGE
"""

RAPPLY_TIME_DIFF = """
SELECT /*+DM_EXPORTER*/ DATEDIFF(SS, LAST_APPLY_TIME, SYSDATE) TIME_DIFF
FROM V$RAPPLY_STAT
"""

INSTANCE_ERROR_LOG = """
SELECT /*+DM_EXPORTER*/ TO_CHAR(LOG_TIME, 'YYYY-MM-DD HH24:MI:SS') LOG_TIME,
       TO_CHAR(PID) PID, LEVEL$, TXT
FROM V$INSTANCE_LOG_HISTORY
WHERE LEVEL$ IN ('ERROR', 'FATAL') AND LOG_TIME > SYSDATE - 5 / 1440
ORDER BY LOG_TIME DESC
"""
